from globalsim.common.logging_setup import get_logger

logger = get_logger("globalsim.esim")

ESIM_KEY_PREFIX = "esim:profile"
FALLBACK_ESIM_PROVIDER = "demo"
ENTERPRISE_COUNTRIES = ("US", "GB", "DE", "FR")
MAX_CAS_RETRIES = 5

SUPPORTED_COUNTRIES = [
    {"code": "US", "name": "United States", "flag": "🇺🇸", "available": True},
    {"code": "GB", "name": "United Kingdom", "flag": "🇬🇧", "available": True},
    {"code": "DE", "name": "Germany", "flag": "🇩🇪", "available": True},
    {"code": "FR", "name": "France", "flag": "🇫🇷", "available": True},
    {"code": "JP", "name": "Japan", "flag": "🇯🇵", "available": True},
    {"code": "AU", "name": "Australia", "flag": "🇦🇺", "available": True},
    {"code": "CA", "name": "Canada", "flag": "🇨🇦", "available": True},
    {"code": "IT", "name": "Italy", "flag": "🇮🇹", "available": True},
    {"code": "ES", "name": "Spain", "flag": "🇪🇸", "available": True},
    {"code": "NL", "name": "Netherlands", "flag": "🇳🇱", "available": True},
    {"code": "CH", "name": "Switzerland", "flag": "🇨🇭", "available": True},
    {"code": "SE", "name": "Sweden", "flag": "🇸🇪", "available": True},
    {"code": "NO", "name": "Norway", "flag": "🇳🇴", "available": True},
    {"code": "DK", "name": "Denmark", "flag": "🇩🇰", "available": True},
    {"code": "FI", "name": "Finland", "flag": "🇫🇮", "available": True},
    {"code": "SG", "name": "Singapore", "flag": "🇸🇬", "available": True},
    {"code": "HK", "name": "Hong Kong", "flag": "🇭🇰", "available": True},
    {"code": "KR", "name": "South Korea", "flag": "🇰🇷", "available": True},
    {"code": "TH", "name": "Thailand", "flag": "🇹🇭", "available": True},
    {"code": "MY", "name": "Malaysia", "flag": "🇲🇾", "available": True},
]

DATA_PLANS = [
    {"id": "1gb-7d", "name": "1GB - 7 Days", "data": "1GB", "validity": "7 days", "price": 9.99},
    {"id": "3gb-15d", "name": "3GB - 15 Days", "data": "3GB", "validity": "15 days", "price": 19.99},
    {"id": "5gb-30d", "name": "5GB - 30 Days", "data": "5GB", "validity": "30 days", "price": 29.99},
    {"id": "10gb-30d", "name": "10GB - 30 Days", "data": "10GB", "validity": "30 days", "price": 49.99},
    {"id": "20gb-30d", "name": "20GB - 30 Days", "data": "20GB", "validity": "30 days", "price": 79.99},
    {"id": "unlimited-30d", "name": "Unlimited - 30 Days", "data": "Unlimited", "validity": "30 days", "price": 99.99},
]

# MB per plan
PLAN_DATA_LIMITS = {
    "1gb-7d": 1024,
    "3gb-15d": 3072,
    "5gb-30d": 5120,
    "10gb-30d": 10240,
    "20gb-30d": 20480,
    "unlimited-30d": 999999,
}
DEFAULT_DATA_LIMIT = 1024

COUNTRY_PREFIXES = {
    "US": "+1",
    "GB": "+44",
    "DE": "+49",
    "FR": "+33",
    "JP": "+81",
    "AU": "+61",
}


def find_country(code: str):
    return next((c for c in SUPPORTED_COUNTRIES if c["code"] == code and c["available"]), None)


def find_plan(plan_id: str):
    return next((p for p in DATA_PLANS if p["id"] == plan_id), None)
