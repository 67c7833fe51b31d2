from .base import ChargeResponse, GatewayError, TransferResponse
from .resend_email import ResendEmailSender
from .square_gateway import SquareGateway
from .stripe_gateway import StripeGateway
from .twilio_sms import TwilioSMSSender

__all__ = [
    "ChargeResponse",
    "GatewayError",
    "TransferResponse",
    "ResendEmailSender",
    "SquareGateway",
    "StripeGateway",
    "TwilioSMSSender",
]
