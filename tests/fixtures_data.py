"""Reusable data for backend test scenarios."""

SHOP_DOMAIN = "fade-factory.myshopify.com"
OTHER_SHOP_DOMAIN = "clip-joint.myshopify.com"

TEST_API_KEY = "test-api-key"
TEST_API_SECRET = "test-api-secret"

ADMIN_ACCESS_TOKEN = "shpat_test_token"

BARBER_FORM = {
    "action": "create",
    "name": "Marcus Reed",
    "specialty": "Skin fades",
    "bio": "Ten years behind the chair.",
    "imageUrl": "https://cdn.example.com/marcus.jpg",
}

SERVICE_FORM = {
    "action": "create",
    "name": "Classic Cut",
    "description": "Scissor cut with a hot towel finish",
    "price": "$35",
    "duration": "45 min",
}

BOOKING_FORM = {
    "customerName": "Jordan Blake",
    "customerEmail": "jordan@example.com",
    "customerPhone": "+1 555 0100",
    "appointmentDate": "2026-11-02T10:30",
    "notes": "First visit",
}

MISSING_FIELDS_ERROR = {
    "error": "Missing required fields",
    "details": "Name, email, phone, service, and appointment date are required",
}

BOOKING_FAILED_ERROR = {
    "error": "Failed to create appointment",
    "details": "Please try again or contact the shop directly",
}
