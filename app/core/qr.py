import base64
from io import BytesIO

import qrcode


def generate_qr_base64(data: str, box_size: int = 10) -> str:
    """
    Render the given string as a QR code and return the PNG image
    encoded as Base64.

    :param data: The string to encode in the QR code
    :param box_size: Size of each box in pixels
    :return: Base64 string of the PNG image
    """
    qr = qrcode.QRCode(
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color='black', back_color='white')

    buffered = BytesIO()
    img.save(buffered, format='PNG')
    return base64.b64encode(buffered.getvalue()).decode('utf-8')
