"""Shared constants for category browsing."""

TOP_CATEGORY_ID = 0

CAP_MANAGE = "category:manage"
CAP_VIEW_HIDDEN = "category:viewhiddencategories"

# Capabilities granted by each user level.
ROLE_CAPABILITIES = {
    "operator": frozenset(),
    "manager": frozenset({CAP_MANAGE, CAP_VIEW_HIDDEN}),
    "admin": frozenset({CAP_MANAGE, CAP_VIEW_HIDDEN}),
}

# Record fields that may be used to sort children.
SORTABLE_FIELDS = (
    "id",
    "name",
    "idnumber",
    "sortorder",
    "depth",
    "path",
    "coursecount",
    "timemodified",
)

FORMAT_HTML = 1

DEFAULT_CACHE_MAXSIZE = 1024
DEFAULT_MAX_CATEGORY_DEPTH = 2
DEFAULT_CATEGORIES_PER_PAGE = 20
