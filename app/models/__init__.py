from app.models.shop import Shop
from app.models.barber import Barber
from app.models.service import Service
from app.models.appointment import Appointment
from app.models.inquiry import Inquiry
from app.models.shopify_session import ShopifySession
