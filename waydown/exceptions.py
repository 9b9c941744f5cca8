"""
Domain exceptions mapped to HTTP errors by the handlers in main.py
"""


class ImageValidationError(Exception):
    """Base class for image validation errors"""
    status_code = 400


class ImageTooLargeError(ImageValidationError):
    """Raised when an uploaded image exceeds the size limit"""
    status_code = 413

    def __init__(self, max_size_mb: int):
        self.max_size_mb = max_size_mb
        super().__init__(
            f"Image file is too large. Maximum size allowed is {max_size_mb}MB.")


class UnsupportedImageFormatError(ImageValidationError):
    """Raised when the file extension or content is not an accepted image type"""

    def __init__(self):
        super().__init__(
            "Only image files are allowed (jpeg, jpg, png, gif, webp).")


class CorruptedImageError(ImageValidationError):
    """Raised when the image cannot be decoded"""

    def __init__(self):
        super().__init__(
            "The image file appears to be corrupted or damaged. Please try uploading a different image.")


class TooManyFilesError(ImageValidationError):
    def __init__(self, max_files: int):
        self.max_files = max_files
        super().__init__(f"Maximum {max_files} files allowed")
