APP_NAME = "Jewel Catalog"
APP_VERSION = "1.4.0"
APP_TITLE = f"{APP_NAME} v{APP_VERSION}"

# Keep QSettings identifiers consistent to avoid losing the applied version.
SETTINGS_ORG = "JewelleryApp"
SETTINGS_APP = "JewelCatalog"

LOG_DIR = "logs"

# Remote cache-control document written by the admin tooling.
METADATA_COLLECTION = "metadata"
CACHE_CONTROL_DOCUMENT = "cache_control"
VERSION_FIELD = "version"
DEFAULT_VERSION_TOKEN = "0"

# Remote catalog layout
CATEGORIES_COLLECTION = "categories"
FEATURED_COLLECTION = "featured_products"
FEATURED_LIST_DOCUMENT = "featured_list"
PRODUCTS_COLLECTION = "products"
THEMED_COLLECTIONS_COLLECTION = "themed_collections"
CAROUSEL_COLLECTION = "carousel_items"
CATEGORY_PRODUCTS_COLLECTION = "category_products"
USERS_COLLECTION = "users"
WISHLIST_SUBCOLLECTION = "wishlist"
RECENTLY_VIEWED_SUBCOLLECTION = "recently_viewed"
ORDER_FIELD = "order"

# Local version record keys
CACHE_VERSION_KEY = "cache/version"
LAST_UPDATE_TIMESTAMP_KEY = "cache/last_update_timestamp"

# Server version memoization window (seconds)
SERVER_VERSION_CACHE_DURATION = 5 * 60
