"""
Drive Storage - Attachment Upload to Google Drive
==================================================

Saves files received in project groups into the project's Drive folder:

    ROOT_FOLDER /
      <Project Name> /
        Documentos de Projeto /
          <file>

Uses OAuth client credentials plus a refresh token, so files are owned
by a real Drive account rather than a service account.
"""

import io
import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from google.auth.exceptions import GoogleAuthError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from googleapiclient.http import MediaIoBaseUpload

from ..config import GoogleSettings, get_settings

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/drive"]
FOLDER_MIME = "application/vnd.google-apps.folder"

# Client failures reported as DriveError
API_ERRORS = (HttpError, GoogleAuthError, OSError)

EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "application/pdf": "pdf",
    "audio/mpeg": "mp3",
    "audio/ogg": "ogg",
    "video/mp4": "mp4",
    "text/plain": "txt",
}


class DriveError(Exception):
    """Base exception for Drive upload errors."""
    pass


@dataclass(frozen=True)
class UploadResult:
    id: str
    url: str


def extension_for(mime_type: Optional[str]) -> str:
    base = (mime_type or "").split(";")[0].strip().lower()
    return EXTENSIONS.get(base, "bin")


def slugify(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text or "")
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    cleaned = re.sub(r"[^\w\s-]", "", ascii_text).strip()
    return re.sub(r"\s+", "_", cleaned) or "arquivo"


def build_filename(
    original_name: Optional[str],
    project_name: str,
    mime_type: Optional[str],
    when: Optional[datetime] = None,
) -> str:
    """
    Name for an uploaded attachment: original name (or project slug) plus a
    ``_YYYY-MM-DD-HHMM`` stamp, with an extension derived from the MIME type.
    """
    when = when or datetime.now()
    if original_name:
        stem = original_name.rsplit(".", 1)[0] if "." in original_name else original_name
    else:
        stem = slugify(project_name or "arquivo")
    return f"{stem}_{when:%Y-%m-%d-%H%M}.{extension_for(mime_type)}"


class DriveStorage:
    """
    Google Drive uploader.

    USAGE:
        storage = DriveStorage()
        result = storage.upload(data, "ata.pdf", "application/pdf",
                                "Projeto X/Documentos de Projeto")
        print(result.url)
    """

    def __init__(self, settings: Optional[GoogleSettings] = None, service=None):
        self._settings = settings or get_settings().google
        self._service = service

    @property
    def configured(self) -> bool:
        return self._service is not None or self._settings.has_drive_oauth

    def _get_service(self):
        if self._service is None:
            if not self._settings.has_drive_oauth:
                raise DriveError(
                    "Drive OAuth is not configured "
                    "(GOOGLE_OAUTH_CLIENT_ID / SECRET / REFRESH_TOKEN / GOOGLE_DRIVE_ROOT_FOLDER_ID)"
                )
            credentials = Credentials(
                token=None,
                refresh_token=self._settings.oauth_refresh_token,
                client_id=self._settings.oauth_client_id,
                client_secret=self._settings.oauth_client_secret,
                token_uri=self._settings.token_uri,
                scopes=SCOPES,
            )
            self._service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        return self._service

    def project_path(self, project_name: str) -> str:
        return f"{(project_name or 'Projeto').strip()}/{self._settings.project_docs_folder}"

    def _find_folder(self, name: str, parent_id: Optional[str]) -> Optional[str]:
        escaped = name.replace("\\", "\\\\").replace("'", "\\'")
        query = [f"mimeType='{FOLDER_MIME}'", f"name='{escaped}'", "trashed=false"]
        if parent_id:
            query.append(f"'{parent_id}' in parents")

        response = self._get_service().files().list(
            q=" and ".join(query),
            fields="files(id,name)",
            includeItemsFromAllDrives=True,
            supportsAllDrives=True,
        ).execute()
        files = response.get("files", [])
        return files[0]["id"] if files else None

    def ensure_folder(self, name: str, parent_id: Optional[str]) -> str:
        existing = self._find_folder(name, parent_id)
        if existing:
            return existing

        metadata = {"name": name, "mimeType": FOLDER_MIME}
        if parent_id:
            metadata["parents"] = [parent_id]
        folder = self._get_service().files().create(
            body=metadata, fields="id", supportsAllDrives=True
        ).execute()
        logger.info(f"Created Drive folder '{name}' ({folder['id']})")
        return folder["id"]

    def ensure_path(self, destination_path: str) -> str:
        """Create (or reuse) each folder of ``a/b/c`` below the root folder."""
        parent_id = self._settings.drive_root_folder_id or None
        for part in (p.strip() for p in destination_path.split("/")):
            if part:
                parent_id = self.ensure_folder(part, parent_id)
        return parent_id

    def upload(self, data: bytes, filename: str, mime_type: str, destination_path: str) -> UploadResult:
        """
        Upload bytes into ``destination_path`` (created on demand).

        Raises:
            DriveError: when Drive is not configured or the API call fails.
        """
        try:
            folder_id = self.ensure_path(destination_path)
            media = MediaIoBaseUpload(
                io.BytesIO(data),
                mimetype=mime_type or "application/octet-stream",
                resumable=True,
            )
            metadata = {"name": filename}
            if folder_id:
                metadata["parents"] = [folder_id]

            logger.info(f"Uploading {filename} ({len(data)} bytes) to {destination_path}")
            created = self._get_service().files().create(
                body=metadata,
                media_body=media,
                fields="id, webViewLink, webContentLink",
                supportsAllDrives=True,
            ).execute()
        except API_ERRORS as e:
            raise DriveError(f"Drive upload failed for {filename}: {e}") from e

        file_id = created["id"]
        url = (
            created.get("webViewLink")
            or created.get("webContentLink")
            or f"https://drive.google.com/file/d/{file_id}/view"
        )
        logger.info(f"Upload successful - ID: {file_id}")
        return UploadResult(id=file_id, url=url)
