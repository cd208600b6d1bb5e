"""
HealthPartner Backoffice — Modular Backend Package (v1.4.0)

Architecture:
  backoffice/
  ├── config/          — Environment, business-rule defaults, enums, demo floors
  ├── ids/             — Record ids, affiliate codes, references
  ├── db/              — Snapshot store over file / PostgreSQL / memory slots
  ├── migrate/         — Shape normalization and invoice-affiliate repair on load
  ├── seed/            — Demo dataset and demo floor top-ups
  ├── repositories/    — Generic per-collection list/get/upsert/delete
  ├── partners/        — Partner KYC, affiliates, services, agenda
  ├── receivables/     — Charges, advances, settlements, bank integrations, invoices
  ├── rates/           — Fee schedule resolution and overlap report
  ├── limits/          — Per-partner daily/monthly/transaction ceilings
  ├── reconciliation/  — Bank file matching against charges
  ├── reports/         — Per-partner volume reports
  ├── risk/            — Partner risk scores and levels
  ├── notifications/   — Back-office alerts
  ├── contracts/       — Partner contracts
  ├── validators/      — CPF/CNPJ check digits, formatting
  ├── auth/            — JWT, role personas, RBAC
  └── server.py        — FastAPI routing layer

Each module is self-contained with clear imports and no circular dependencies.
"""
