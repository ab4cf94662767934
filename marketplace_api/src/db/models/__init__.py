"""
ORM models for marketplace entities: profiles, listings, messaging, offers,
engagement (favorites, reviews), moderation and search analytics.

Importing this package ensures model classes are registered with the Base
metadata for Alembic and runtime usage.
"""

from .profiles import (  # noqa: F401
    Profile,
    NotificationPreference,
)
from .listings import (  # noqa: F401
    Listing,
    ListingImage,
    Modification,
)
from .messaging import (  # noqa: F401
    Message,
    ConversationSetting,
    InAppNotification,
)
from .offers import (  # noqa: F401
    Offer,
    OfferHistory,
)
from .engagement import (  # noqa: F401
    Favorite,
    Review,
)
from .moderation import (  # noqa: F401
    MessageReport,
)
from .analytics import (  # noqa: F401
    SearchEvent,
)
