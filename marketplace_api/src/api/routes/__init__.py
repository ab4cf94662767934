"""
API route modules for the vehicle marketplace.

Each module exposes a `router` carrying its full /api/v1 prefix:
- auth, profiles: accounts, tokens and notification preferences
- listings, search: vehicle listings, images and listing search
- favorites, reviews, offers, cron: buyer engagement and offer lifecycle
- messages, notifications, reports: conversations, in-app alerts and moderation
- analytics, admin: search analytics, staff dashboards and exports

Routers are included from src.api.main.
"""
