import logging
import threading
from typing import Any, Dict, Optional

from fastapi import Body, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

import config
from admin_gate import AdminGate
from codes import normalize_code
from database.crud import SqlGiftCardRegistry, SqlGlobalPriceStore, create_tables
from database.session import SessionLocal, engine
from errors import GiftCardError, InvalidPrice, LogoutFailed, Unauthorized
from pricing import (
    DEFAULT_CURRENCY,
    SUPPORTED_CURRENCIES,
    GlobalPriceStore,
    global_price_to_dict,
    resolve_price,
    validate_price,
)
from registry import GiftCardRegistry, card_stats
from time_utils import to_iso, utcnow

# ------------------------------------------------------------------------------
# Konfiguracja aplikacji i logowania
# ------------------------------------------------------------------------------

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("giftcard-validator")

app = FastAPI(title="Gift Card Validator")

app.add_middleware(
    SessionMiddleware,
    secret_key=config.SESSION_SECRET,
    max_age=config.SESSION_MAX_AGE,
    https_only=config.IS_PRODUCTION,
)


def build_stores(kind: str):
    """
    Zwraca (rejestr kart, magazyn ceny globalnej) dla CARD_STORE.
    """
    if kind == "memory":
        return GiftCardRegistry(), GlobalPriceStore()
    if kind == "database":
        create_tables(engine)
        logger.info("Karty i cena globalna w bazie: %s", engine.url.render_as_string(hide_password=True))
        # jedno połączenie SQLite = jedna blokada dla obu magazynów
        db_lock = threading.RLock()
        return SqlGiftCardRegistry(SessionLocal, db_lock), SqlGlobalPriceStore(SessionLocal, db_lock)
    raise ValueError(f"Nieznany CARD_STORE: {kind!r} (dozwolone: memory, database)")


registry, price_store = build_stores(config.CARD_STORE)
admin_gate = AdminGate(config.ADMIN_USERNAME, config.ADMIN_PASSWORD)


# ------------------------------------------------------------------------------
# Obsługa błędów
# ------------------------------------------------------------------------------


@app.exception_handler(GiftCardError)
def handle_giftcard_error(request: Request, exc: GiftCardError):
    return JSONResponse({"error": exc.message}, status_code=exc.http_status)


# Endpointy /api/admin/* bez bramki (reszta wymaga zalogowanego admina)
PUBLIC_ADMIN_PATHS = ("/api/admin/login", "/api/admin/logout", "/api/admin/status")


@app.exception_handler(RequestValidationError)
def handle_bad_body(request: Request, exc: RequestValidationError):
    """
    FastAPI parsuje body przed dependency, więc zepsuty JSON dotarłby tu
    przed require_admin. Dla endpointów admina bramka ma pierwszeństwo.
    """
    path = request.url.path
    if path.startswith("/api/admin/") and path not in PUBLIC_ADMIN_PATHS:
        try:
            admin_gate.require(request.session)
        except Unauthorized as e:
            return JSONResponse({"error": e.message}, status_code=e.http_status)
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


@app.exception_handler(StarletteHTTPException)
def handle_http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return JSONResponse({"error": "Endpoint not found"}, status_code=404)
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(Exception)
def handle_unexpected(request: Request, exc: Exception):
    logger.exception("Nieobsłużony błąd dla %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        {
            "error": "Something went wrong!",
            "message": str(exc) if config.ENVIRONMENT == "development" else "Internal server error",
        },
        status_code=500,
    )


def require_admin(request: Request) -> None:
    """
    Dependency dla endpointów admina – sprawdza sesję zanim ruszy handler.
    """
    admin_gate.require(request.session)


# ------------------------------------------------------------------------------
# Funkcje pomocnicze
# ------------------------------------------------------------------------------


def _card_currency_default() -> str:
    """
    Waluta dla ceny karty bez podanej waluty: waluta ceny globalnej, a gdy jej
    nie ma – USD.
    """
    global_price = price_store.get()
    return global_price.currency if global_price else DEFAULT_CURRENCY


def _public_card(card) -> Dict[str, Any]:
    price = resolve_price(card, price_store.get())
    return {
        "status": card.status.value,
        "price": price.to_dict() if price else None,
        "code": card.code,
        "createdAt": to_iso(card.created_at),
        "updatedAt": to_iso(card.updated_at),
    }


# ------------------------------------------------------------------------------
# API KLIENTA
# ------------------------------------------------------------------------------


@app.get("/api/price")
def get_price():
    return global_price_to_dict(price_store.get())


@app.post("/api/validate")
def validate_card(payload: Optional[Dict[str, Any]] = Body(None)):
    """
    Sprawdza kod karty. Nieznany (poprawny) kod zakładamy jako pending.
    """
    code = normalize_code((payload or {}).get("code"))
    card = registry.lookup_or_create(code)
    return _public_card(card)


# ------------------------------------------------------------------------------
# ADMIN API – logowanie
# ------------------------------------------------------------------------------


@app.post("/api/admin/login")
def admin_login(request: Request, payload: Optional[Dict[str, Any]] = Body(None)):
    payload = payload or {}
    admin_gate.login(request.session, payload.get("username"), payload.get("password"))
    return {"success": True, "message": "Login successful"}


@app.get("/api/admin/status")
def admin_status(request: Request):
    return {"isAuthenticated": admin_gate.is_authenticated(request.session)}


@app.post("/api/admin/logout")
def admin_logout(request: Request):
    try:
        admin_gate.logout(request.session)
    except Exception as e:
        logger.exception("Błąd podczas wylogowania: %s", e)
        raise LogoutFailed()
    return {"success": True, "message": "Logout successful"}


# ------------------------------------------------------------------------------
# ADMIN API – karty i ceny
# ------------------------------------------------------------------------------


@app.get("/api/admin/cards", dependencies=[Depends(require_admin)])
def admin_list_cards():
    """
    Wszystkie karty (najnowsze pierwsze) + statystyki + cena globalna.
    """
    global_price = price_store.get()
    cards = registry.list_all()

    data = []
    for card in cards:
        row = card.to_dict()
        effective = resolve_price(card, global_price)
        row["effectivePrice"] = effective.to_dict() if effective else None
        data.append(row)

    return {
        "cards": data,
        "stats": card_stats(cards),
        "globalPrice": global_price.to_dict() if global_price else None,
    }


@app.put("/api/admin/cards/{code}/status", dependencies=[Depends(require_admin)])
def admin_set_card_status(code: str, payload: Optional[Dict[str, Any]] = Body(None)):
    code = normalize_code(code)
    status = (payload or {}).get("status")

    card = registry.set_status(code, status)
    return {
        "success": True,
        "message": f"Card {code} status updated to {card.status.value}",
        "card": card.to_dict(),
    }


@app.put("/api/admin/cards/{code}/price", dependencies=[Depends(require_admin)])
def admin_set_card_price(code: str, payload: Optional[Dict[str, Any]] = Body(None)):
    """
    Cena indywidualna karty.

    payload:
      { "amount": 4.5, "currency": "EUR" }  – ustawia cenę
      { "amount": 4.5 }                     – waluta z ceny globalnej albo USD
      { "amount": null } / {}               – usuwa cenę (wraca cena globalna)
    """
    code = normalize_code(code)
    payload = payload or {}

    registry.get(code)

    amount = payload.get("amount")
    if amount is None:
        price = None
    else:
        currency = payload.get("currency") or _card_currency_default()
        price = validate_price(amount, currency)

    card = registry.set_price(code, price)
    return {
        "success": True,
        "message": f"Card {code} price updated",
        "card": card.to_dict(),
    }


@app.delete("/api/admin/cards/{code}", dependencies=[Depends(require_admin)])
def admin_delete_card(code: str):
    code = normalize_code(code)
    registry.delete(code)
    return {"success": True, "message": f"Card {code} deleted successfully"}


@app.get("/api/admin/price", dependencies=[Depends(require_admin)])
def admin_get_price():
    return global_price_to_dict(price_store.get())


@app.put("/api/admin/price", dependencies=[Depends(require_admin)])
def admin_set_price(payload: Optional[Dict[str, Any]] = Body(None)):
    payload = payload or {}
    try:
        money = validate_price(payload.get("amount"), payload.get("currency"))
    except InvalidPrice:
        raise InvalidPrice(
            "Invalid price data. Amount must be a positive number and currency "
            f"must be one of: {', '.join(SUPPORTED_CURRENCIES)}"
        )

    price = price_store.set(money)
    return {
        "success": True,
        "message": "Global price updated successfully",
        "price": price.to_dict(),
    }


# ------------------------------------------------------------------------------
# PROSTE ENDPOINTY POMOCNICZE
# ------------------------------------------------------------------------------


@app.get("/api/health")
def health_check():
    return {
        "status": "healthy",
        "timestamp": to_iso(utcnow()),
        "cardsCount": registry.count(),
        "globalPriceSet": price_store.get() is not None,
    }


# ------------------------------------------------------------------------------
# STRONA KLIENTA + PANEL ADMINA (HTML + JS)
# ------------------------------------------------------------------------------


PAGE_STYLE = """
  <style>
    :root {
      font-family: system-ui, -apple-system, BlinkMacSystemFont, "Segoe UI", sans-serif;
      color-scheme: light;
    }
    body {
      margin: 0;
      background: #0f172a;
      color: #111827;
    }
    * {
      box-sizing: border-box;
    }
    .card {
      max-width: 960px;
      margin: 32px auto;
      background: #ffffff;
      border-radius: 16px;
      padding: 24px;
      box-shadow: 0 20px 40px rgba(15, 23, 42, 0.35);
    }
    h1 {
      margin-top: 0;
      font-size: 22px;
    }
    input, select, button {
      font: inherit;
      padding: 8px 12px;
      border-radius: 8px;
      border: 1px solid #d1d5db;
    }
    button {
      background: #2563eb;
      color: #ffffff;
      border: none;
      cursor: pointer;
    }
    button.secondary {
      background: #e5e7eb;
      color: #111827;
    }
    .muted {
      color: #6b7280;
      font-size: 13px;
    }
    .row {
      display: flex;
      gap: 8px;
      flex-wrap: wrap;
      align-items: center;
      margin-bottom: 12px;
    }
    .status-pending { color: #b45309; }
    .status-accepted { color: #15803d; }
    .status-declined { color: #b91c1c; }
    table {
      width: 100%;
      border-collapse: collapse;
      font-size: 14px;
    }
    th, td {
      text-align: left;
      padding: 6px 8px;
      border-bottom: 1px solid #e5e7eb;
    }
  </style>
"""

INDEX_HTML = """
<!DOCTYPE html>
<html lang="pl">
<head>
  <meta charset="UTF-8" />
  <title>Sprawdź kartę podarunkową</title>
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
""" + PAGE_STYLE + """
</head>
<body>
  <div class="card">
    <h1>Sprawdź kartę podarunkową</h1>
    <div class="row">
      <input id="code" maxlength="25" placeholder="Kod karty (litery i cyfry)" />
      <button onclick="checkCode()">Sprawdź</button>
    </div>
    <div id="result" class="muted">Aktualna cena: <span id="price">...</span></div>
  </div>

  <script>
    function formatPrice(price) {
      if (!price || price.amount === null) {
        return "cena nie została jeszcze ustalona";
      }
      return price.amount.toFixed(2) + " " + price.currency;
    }

    async function loadPrice() {
      const res = await fetch("/api/price");
      const data = await res.json();
      document.getElementById("price").textContent = formatPrice(data);
    }

    async function checkCode() {
      const code = document.getElementById("code").value;
      const result = document.getElementById("result");
      try {
        const res = await fetch("/api/validate", {
          method: "POST",
          headers: { "Content-Type": "application/json" },
          body: JSON.stringify({ code: code }),
        });
        const data = await res.json();
        if (!res.ok) {
          result.textContent = data.error || ("Błąd " + res.status);
          return;
        }
        result.innerHTML =
          "Karta <b>" + data.code + "</b>: " +
          '<span class="status-' + data.status + '">' + data.status + "</span>" +
          " – " + formatPrice(data.price);
      } catch (e) {
        console.error(e);
        result.textContent = "Wystąpił błąd przy komunikacji z serwerem.";
      }
    }

    loadPrice();
  </script>
</body>
</html>
"""

ADMIN_HTML = """
<!DOCTYPE html>
<html lang="pl">
<head>
  <meta charset="UTF-8" />
  <title>Panel kart podarunkowych</title>
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
""" + PAGE_STYLE + """
</head>
<body>
  <div class="card" id="login-box">
    <h1>Logowanie admina</h1>
    <div class="row">
      <input id="username" placeholder="Login" />
      <input id="password" type="password" placeholder="Hasło" />
      <button onclick="login()">Zaloguj</button>
    </div>
    <div id="login-error" class="muted"></div>
  </div>

  <div class="card" id="panel" style="display: none">
    <div class="row" style="justify-content: space-between">
      <h1>Panel administracyjny kart podarunkowych</h1>
      <button class="secondary" onclick="logout()">Wyloguj</button>
    </div>

    <div class="row">
      <span>Cena globalna:</span>
      <input id="global-amount" type="number" min="0" step="0.01" />
      <select id="global-currency"></select>
      <button onclick="saveGlobalPrice()">Zapisz</button>
    </div>

    <div id="stats" class="muted"></div>

    <table>
      <thead>
        <tr>
          <th>Kod</th><th>Status</th><th>Cena</th><th>Utworzono</th><th>Akcje</th>
        </tr>
      </thead>
      <tbody id="cards"></tbody>
    </table>
  </div>

  <script>
    const CURRENCIES = __CURRENCIES__;

    async function api(url, options) {
      const res = await fetch(url, Object.assign({
        headers: { "Content-Type": "application/json" },
      }, options || {}));
      const data = await res.json().catch(() => ({}));
      if (!res.ok) {
        throw new Error(data.error || ("Błąd " + res.status));
      }
      return data;
    }

    function formatPrice(price) {
      if (!price) return "–";
      return price.amount.toFixed(2) + " " + price.currency;
    }

    async function checkSession() {
      const data = await api("/api/admin/status");
      document.getElementById("login-box").style.display = data.isAuthenticated ? "none" : "";
      document.getElementById("panel").style.display = data.isAuthenticated ? "" : "none";
      if (data.isAuthenticated) {
        loadCards();
      }
    }

    async function login() {
      try {
        await api("/api/admin/login", {
          method: "POST",
          body: JSON.stringify({
            username: document.getElementById("username").value,
            password: document.getElementById("password").value,
          }),
        });
        document.getElementById("login-error").textContent = "";
        checkSession();
      } catch (e) {
        document.getElementById("login-error").textContent = e.message;
      }
    }

    async function logout() {
      await api("/api/admin/logout", { method: "POST" });
      checkSession();
    }

    async function loadCards() {
      const data = await api("/api/admin/cards");
      const s = data.stats;
      document.getElementById("stats").textContent =
        "Wszystkie: " + s.total + " · zaakceptowane: " + s.accepted +
        " · odrzucone: " + s.declined + " · oczekujące: " + s.pending;

      if (data.globalPrice) {
        document.getElementById("global-amount").value = data.globalPrice.amount;
        document.getElementById("global-currency").value = data.globalPrice.currency;
      }

      const tbody = document.getElementById("cards");
      tbody.innerHTML = "";
      data.cards.forEach((card) => {
        const tr = document.createElement("tr");
        tr.innerHTML =
          "<td>" + card.code + "</td>" +
          '<td class="status-' + card.status + '">' + card.status + "</td>" +
          "<td>" + formatPrice(card.effectivePrice) + (card.price ? " (indywidualna)" : "") + "</td>" +
          "<td>" + new Date(card.createdAt).toLocaleString() + "</td>" +
          "<td>" +
          '<button onclick="setStatus(\\'' + card.code + '\\', \\'accepted\\')">Akceptuj</button> ' +
          '<button onclick="setStatus(\\'' + card.code + '\\', \\'declined\\')">Odrzuć</button> ' +
          '<button class="secondary" onclick="setCardPrice(\\'' + card.code + '\\')">Cena</button> ' +
          '<button class="secondary" onclick="deleteCard(\\'' + card.code + '\\')">Usuń</button>' +
          "</td>";
        tbody.appendChild(tr);
      });
    }

    async function setStatus(code, status) {
      await api("/api/admin/cards/" + encodeURIComponent(code) + "/status", {
        method: "PUT",
        body: JSON.stringify({ status: status }),
      });
      loadCards();
    }

    async function setCardPrice(code) {
      const raw = prompt("Cena dla " + code + " (puste = cena globalna):");
      if (raw === null) return;
      const amount = raw.trim() === "" ? null : parseFloat(raw);
      try {
        await api("/api/admin/cards/" + encodeURIComponent(code) + "/price", {
          method: "PUT",
          body: JSON.stringify({ amount: amount }),
        });
        loadCards();
      } catch (e) {
        alert(e.message);
      }
    }

    async function deleteCard(code) {
      if (!confirm("Usunąć kartę " + code + "?")) return;
      await api("/api/admin/cards/" + encodeURIComponent(code), { method: "DELETE" });
      loadCards();
    }

    async function saveGlobalPrice() {
      try {
        await api("/api/admin/price", {
          method: "PUT",
          body: JSON.stringify({
            amount: parseFloat(document.getElementById("global-amount").value),
            currency: document.getElementById("global-currency").value,
          }),
        });
        loadCards();
      } catch (e) {
        alert(e.message);
      }
    }

    const select = document.getElementById("global-currency");
    CURRENCIES.forEach((c) => {
      const opt = document.createElement("option");
      opt.value = c;
      opt.textContent = c;
      select.appendChild(opt);
    });

    checkSession();
  </script>
</body>
</html>
""".replace("__CURRENCIES__", "[" + ", ".join(f'"{c}"' for c in SUPPORTED_CURRENCIES) + "]")


@app.get("/", response_class=HTMLResponse)
def customer_page():
    return HTMLResponse(content=INDEX_HTML)


@app.get("/admin", response_class=HTMLResponse)
def admin_panel():
    """
    Prosty panel administracyjny (HTML + JS) do przeglądania kart, statusów i cen.
    """
    return HTMLResponse(content=ADMIN_HTML)


if __name__ == "__main__":
    import uvicorn

    logger.info("Gift Card Validator na porcie %s", config.PORT)
    logger.info("Strona klienta: http://localhost:%s/", config.PORT)
    logger.info("Panel admina: http://localhost:%s/admin", config.PORT)
    if not config.IS_PRODUCTION:
        logger.info("Dane logowania admina: %s / %s", config.ADMIN_USERNAME, config.ADMIN_PASSWORD)

    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
