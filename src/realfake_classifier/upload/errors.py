"""
Error taxonomy for the upload-to-inference pipeline.

Every error is terminal for the current run. The state controller turns
each one into a state reset, a cleared score vector and (except for
``NoFileSelected``) a single call to the error callback with
``user_message``.
"""


class UploadError(Exception):
    """Base exception for upload pipeline errors."""

    user_message = "Error: Something went wrong while processing the image."
    silent = False

    def __init__(self, message: str | None = None):
        self.user_message = message or self.user_message
        super().__init__(self.user_message)


class NoFileSelected(UploadError):
    """The file-selection event carried no files."""

    user_message = "No file selected."
    silent = True


class UnsupportedFileType(UploadError):
    """The selected file is not an accepted image type."""

    user_message = "Error: Please select a *.jpeg, *.jpg, or *.png file!"


class ImageDecodeFailed(UploadError):
    """The selected file could not be decoded as an image."""

    user_message = "Error: The selected image could not be read. Please try another file."


class ModelUnavailable(UploadError):
    """No classifier handle was available at inference time."""

    user_message = (
        "Error: The model could not be loaded! "
        "It may still be loading, please try again later."
    )


class InferenceFailed(UploadError):
    """The classifier raised or produced an output of the wrong shape."""

    user_message = "Error: The model failed to classify the image. Please try again."
