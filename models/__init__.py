# Registers both tables on Base.metadata
from .user import User  # noqa: F401
from .payment import Payment  # noqa: F401
