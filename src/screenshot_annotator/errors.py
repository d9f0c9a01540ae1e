"""Error taxonomy shared by capture, codec, messaging and editor code."""


class AnnotatorError(Exception):
    """Base class for all screenshot-annotator failures."""
    pass


class CaptureFailure(AnnotatorError):
    """Raised when the snapshot primitive is unavailable or fails."""
    pass


class DecodeFailure(AnnotatorError):
    """Raised when image data is malformed or cannot be decoded."""
    pass


class DeliveryFailure(AnnotatorError):
    """Raised when a message could not be delivered to its target."""
    pass


class EmptyInput(AnnotatorError):
    """Zero-extent shape or blank text. Callers treat it as a silent no-op."""
    pass
