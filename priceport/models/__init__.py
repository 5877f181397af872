# Import the declarative base
from priceport.db.base import Base

# Import all models for Alembic/SQLAlchemy discovery
# Note: These imports are required so that they register themselves on Base.metadata
from priceport.models.item_price import ItemPrice  # noqa: F401
from priceport.models.price_schedule import ItemPriceSchedule  # noqa: F401
