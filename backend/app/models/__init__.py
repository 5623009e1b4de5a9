from backend.app.models.user import User  # noqa: F401
from backend.app.models.client import Client  # noqa: F401
from backend.app.models.invoice import Invoice  # noqa: F401
from backend.app.models.line_item import LineItem  # noqa: F401
from backend.app.models.payment import Payment  # noqa: F401
from backend.app.models.activity import InvoiceActivity  # noqa: F401
