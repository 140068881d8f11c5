import base64


def encode_content(content: str) -> str:
    return base64.b64encode(content.encode("utf-8")).decode("ascii")


def decode_content(content: str) -> str:
    """Decode base64 content returned by GitHub. Line breaks in the payload are ignored."""
    return base64.b64decode(content).decode("utf-8")
