"""
HealthPartner Backoffice — Configuration & Constants
Environment variables, feature flags, business-rule defaults and demo floors.
"""
import os
from pathlib import Path

# ============================================================
# PATHS
# ============================================================
BASE_DIR = Path(__file__).parent.parent.parent
DATA_DIR = Path(os.environ.get("DATA_DIR", BASE_DIR / "data"))
DB_PATH = Path(os.environ.get("DB_PATH", DATA_DIR / "backoffice.json"))
DB_LOCK_PATH = DB_PATH.with_suffix(".lock")

# ============================================================
# STORAGE
# ============================================================
DATABASE_URL = os.environ.get("DATABASE_URL")
STATE_KEY = os.environ.get("STATE_KEY", "hpm_backoffice_v1")

# ============================================================
# FEATURE FLAGS
# ============================================================
PERSIST_DATA = os.environ.get("PERSIST_DATA", "true").lower() == "true"
SEED_DEMO = os.environ.get("SEED_DEMO", "false").lower() == "true"
RESET_ON_START = os.environ.get("RESET_ON_START", "false").lower() == "true"

if PERSIST_DATA and not DATABASE_URL:
    DATA_DIR.mkdir(parents=True, exist_ok=True)

# ============================================================
# AUTH
# ============================================================
JWT_SECRET = os.environ.get("JWT_SECRET", os.urandom(32).hex())
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.environ.get("JWT_EXPIRY_HOURS", "12"))
AUTH_ENABLED = os.environ.get("AUTH_ENABLED", "true").lower() == "true"

# Back-office operators manage everything; hospital users only read.
ROLES = {
    "operator": {"title": "Backoffice Operator", "level": 2},
    "hospital": {"title": "Partner Institution", "level": 1},
}
DEFAULT_ROLE = "hospital"

# ============================================================
# SCHEMA
# ============================================================
COLLECTIONS = (
    "partners", "affiliates", "services", "rates", "charges", "advances",
    "settlements", "reconciliation", "bankIntegrations", "settlementInstructions",
    "volumeReports", "agendas", "notifications", "contracts", "riskScores",
    "limits", "invoices",
)

# ============================================================
# BUSINESS RULES
# ============================================================
RECONCILIATION_TOLERANCE = float(os.environ.get("RECONCILIATION_TOLERANCE", "0.01"))

DEFAULT_LIMIT_CEILINGS = {
    "daily": float(os.environ.get("DEFAULT_DAILY_LIMIT", "100000")),
    "monthly": float(os.environ.get("DEFAULT_MONTHLY_LIMIT", "1000000")),
    "transaction": float(os.environ.get("DEFAULT_TRANSACTION_LIMIT", "1000000")),
}

# score >= threshold -> level, checked top-down
RISK_LEVEL_THRESHOLDS = (
    (800, "low"),
    (600, "medium"),
    (400, "high"),
)
RISK_LEVEL_FLOOR = "critical"
RISK_SCORE_MIN = 0
RISK_SCORE_MAX = 1000

# ============================================================
# ENUMS
# ============================================================
PARTNER_STATUSES = ("active", "inactive")
KYC_STATUSES = ("pending", "under_review", "approved", "rejected")
CHARGE_STATUSES = ("pending", "paid", "contested", "canceled")
ADVANCE_STATUSES = ("requested", "approved", "rejected", "settled")
SETTLEMENT_STATUSES = ("scheduled", "executed")
INSTRUCTION_STATUSES = ("pending", "sent", "confirmed", "failed")
RECONCILIATION_STATUSES = ("pending", "matched", "discrepancy", "resolved")
BANK_INTEGRATION_STATUSES = ("active", "inactive", "error")
INTEGRATION_TYPES = ("CNAB", "API", "SFTP")
NOTIFICATION_TYPES = ("kyc", "advance", "settlement", "security", "agenda")
NOTIFICATION_PRIORITIES = ("low", "medium", "high", "critical")
CONTRACT_TYPES = ("service", "exclusivity", "penalty")
CONTRACT_STATUSES = ("draft", "active", "suspended", "terminated")
LIMIT_TYPES = ("daily", "monthly", "transaction")
INVOICE_STATUSES = ("pending", "approved", "rejected")

# ============================================================
# DEMO DATA
# ============================================================
# collection -> (threshold, target): below threshold, top up to target
DEMO_FLOORS = {
    "affiliates": (20, 25),
    "invoices": (100, 150),
    "advances": (100, 200),
    "charges": (200, 400),
}
DEMO_HISTORY_DAYS = 90
INVOICE_DUE_DAYS = 15

DEMO_PERSON_NAMES = [
    "Dr. Pedro Almeida", "Dra. Luiza Martins", "Dr. Rafael Souza", "Dra. Ana Beatriz",
    "Dr. Gustavo Lima", "Dra. Fernanda Rocha", "Dr. Henrique Campos", "Dra. Paula Nogueira",
    "Dr. Thiago Ribeiro", "Dra. Camila Duarte", "Dr. Felipe Azevedo", "Dra. Renata Pires",
    "Dr. Marcelo Costa", "Dra. Juliana Silva", "Dr. Roberto Santos", "Dra. Patricia Lima",
    "Dr. André Oliveira", "Dra. Beatriz Ferreira", "Dr. Lucas Rodrigues", "Dra. Vanessa Alves",
    "Dr. Bruno Mendes", "Dra. Carla Santos", "Dr. Diego Oliveira", "Dra. Eliana Costa",
    "Dr. Fabio Rocha", "Dra. Gabriela Lima", "Dr. Hugo Pereira", "Dra. Isabela Alves",
    "Dr. João Silva", "Dra. Maria Oliveira", "Dr. Carlos Santos", "Dra. Ana Costa",
    "Dr. Paulo Lima", "Dra. Juliana Rocha", "Dr. Ricardo Alves", "Dra. Patricia Mendes",
]
DEMO_SPECIALTIES = [
    "Cardiologia", "Pediatria", "Ortopedia", "Dermatologia", "Ginecologia", "Neurologia",
    "Oftalmologia", "Endocrinologia", "Oncologia", "Psiquiatria", "Urologia", "Gastroenterologia",
]
DEMO_STATES = ["SP", "RJ", "MG", "RS", "PR"]

# ============================================================
# VERSION
# ============================================================
VERSION = "1.4.0"
