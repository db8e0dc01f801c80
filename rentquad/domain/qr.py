"""Vehicle QR payloads: ``RENTQUAD_VEHICLE:<vehicleId>``."""

QR_PREFIX = "RENTQUAD_VEHICLE:"


class InvalidQrPayload(ValueError):
    """Raised when a scanned code is not a RentQuad vehicle code."""


def build_vehicle_qr(vehicle_id: str) -> str:
    if not vehicle_id:
        raise ValueError("vehicle_id must not be empty")
    return f"{QR_PREFIX}{vehicle_id}"


def parse_vehicle_qr(payload: str | None) -> str:
    """Return the vehicle id encoded in *payload*, else raise ``InvalidQrPayload``."""
    if not payload or not payload.isascii() or not payload.startswith(QR_PREFIX):
        raise InvalidQrPayload("Not a RentQuad vehicle QR code")
    vehicle_id = payload[len(QR_PREFIX):]
    if not vehicle_id or vehicle_id.strip() != vehicle_id:
        raise InvalidQrPayload("QR code carries no usable vehicle id")
    return vehicle_id
