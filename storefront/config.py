# storefront.config
from pathlib import Path
from decimal import Decimal
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du client storefront.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose l'URL de l'API REST et la clé publique Stripe
- Expose les paramètres du checkout (devise, TVA, frais de port, timeouts)
- Fournit les chemins de redirection post-commande et le contact support
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _decimal_env(name: str, default: str) -> Decimal:
    raw = _clean_env(os.getenv(name) or "") or default
    return Decimal(raw)

# API REST du storefront (serveur externe)
# - peut être fourni sans schéma: on préfixe en https:// si nécessaire
API_BASE_URL = _clean_env(os.getenv("API_BASE_URL") or os.getenv("VITE_API_BASE_URL") or "http://localhost:5000/api")
if API_BASE_URL and not API_BASE_URL.startswith("http"):
    API_BASE_URL = "https://" + API_BASE_URL
if API_BASE_URL.endswith("/"):
    API_BASE_URL = API_BASE_URL.rstrip("/")

HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))

# Stripe: seule la clé publique est utilisée côté client (confirmation du PaymentIntent)
STRIPE_PUBLIC_KEY = _clean_env(os.getenv("STRIPE_PUBLIC_KEY") or os.getenv("STRIPE_PUBLISHABLE_KEY") or "")

# Checkout: devise, TVA (20%), frais de port fixes
CHECKOUT_CURRENCY = _clean_env(os.getenv("CHECKOUT_CURRENCY") or "gbp").lower()
CHECKOUT_TAX_RATE = _decimal_env("CHECKOUT_TAX_RATE", "0.20")
CHECKOUT_FLAT_SHIPPING = _decimal_env("CHECKOUT_FLAT_SHIPPING", "0.00")
CHECKOUT_DEFAULT_COUNTRY = os.getenv("CHECKOUT_DEFAULT_COUNTRY", "United Kingdom")

# Durée max d'une étape réseau (création d'intent, création de commande)
CHECKOUT_STEP_TIMEOUT_SECONDS = float(os.getenv("CHECKOUT_STEP_TIMEOUT_SECONDS", "30"))

# Pays pour lesquels les formats (code postal, téléphone) deviennent bloquants
CHECKOUT_STRICT_FORMAT_COUNTRIES = [
    c.strip().lower() for c in os.getenv("CHECKOUT_STRICT_FORMAT_COUNTRIES", "").split(",") if c.strip()
]

# Redirection après commande et contact support (commande échouée après paiement)
ORDER_CONFIRMATION_PATH = os.getenv("ORDER_CONFIRMATION_PATH", "/order-confirmation")
SUPPORT_EMAIL = _clean_env(os.getenv("SUPPORT_EMAIL") or "support@example.com")

# Cookies / CORS (dev)
COOKIE_NAME = os.getenv("COOKIE_NAME", "sf_access")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]
