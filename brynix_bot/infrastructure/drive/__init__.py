from .drive_storage import DriveStorage, DriveError, UploadResult, build_filename, extension_for

__all__ = ["DriveStorage", "DriveError", "UploadResult", "build_filename", "extension_for"]
