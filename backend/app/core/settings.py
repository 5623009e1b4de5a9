import os


class Settings:
    def __init__(self):
        self.app_name = "InvoiceFlow"
        self.api_version = "1.0.0"
        self.environment = os.getenv("APP_ENV", "development")
        self.secret_key = os.getenv("SECRET_KEY", "CHANGE_ME")
        self.access_token_expire_minutes = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
        self.database_url = os.getenv("DATABASE_URL", "sqlite:///./invoiceflow.db")
        self.app_url = os.getenv("APP_URL", "http://localhost:3000")
        self.log_level = os.getenv("LOG_LEVEL", "INFO")

        # Invoicing
        self.invoice_prefix = os.getenv("INVOICE_PREFIX", "INV")
        self.default_currency = os.getenv("DEFAULT_CURRENCY", "USD")
        self.supported_currencies = ("USD", "EUR", "GBP", "CAD", "AUD")

        # Outbound email; an empty host logs messages instead of sending them
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_username = os.getenv("SMTP_USERNAME", "")
        self.smtp_password = os.getenv("SMTP_PASSWORD", "")
        self.mail_from = os.getenv("MAIL_FROM", "invoices@example.com")

        self.stripe_secret_key = os.getenv("STRIPE_SECRET_KEY", "")
        # The payment webhook is unauthenticated; only enable it behind an edge
        # that verifies the gateway signature.
        self.payment_webhooks_enabled = os.getenv("PAYMENT_WEBHOOKS_ENABLED", "false").lower() == "true"


_settings_instance = None


def get_settings():
    """Return a singleton Settings instance."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
