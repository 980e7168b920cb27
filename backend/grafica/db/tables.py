# Fixed table-name map shared by the models and the data access layer.

SERVICE_ORDERS = "service_orders"
SERVICE_ITEMS = "service_items"
SERVICE_INKS = "service_inks"
SERVICE_EXTRAS = "service_extras"
SERVICE_DISCOUNTS = "service_discounts"
SERVICE_PAYMENTS = "service_payments"
SERVICE_COMMENTS = "service_comments"
CLIENTS = "clients"
MATERIALS = "materials"
INKS = "inks"
SETTINGS = "settings"

TABLES = {
    "SERVICE_ORDERS": SERVICE_ORDERS,
    "SERVICE_ITEMS": SERVICE_ITEMS,
    "SERVICE_INKS": SERVICE_INKS,
    "SERVICE_EXTRAS": SERVICE_EXTRAS,
    "SERVICE_DISCOUNTS": SERVICE_DISCOUNTS,
    "SERVICE_PAYMENTS": SERVICE_PAYMENTS,
    "SERVICE_COMMENTS": SERVICE_COMMENTS,
    "CLIENTS": CLIENTS,
    "MATERIALS": MATERIALS,
    "INKS": INKS,
    "SETTINGS": SETTINGS,
}

# Tables owned directly by a user (children hang off service_orders)
TOP_LEVEL = (CLIENTS, MATERIALS, INKS, SERVICE_ORDERS)
