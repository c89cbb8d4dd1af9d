"""
File Storage Management for Story Uploads
Handles validation, saving and deletion of cover images and narration audio
"""

import io
import os
import uuid
from typing import Optional

import aiofiles
from fastapi import UploadFile
from PIL import Image

from .errors import ValidationError

PUBLIC_PREFIX = "/uploads"
IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.webp'}
AUDIO_EXTENSIONS = {'.mp3', '.wav', '.ogg', '.m4a'}
MAX_IMAGE_SIZE = (1600, 1600)  # Max dimensions


class FileStorageManager:
    """Manages uploaded story assets on local disk"""

    def __init__(self, upload_dir: str, max_bytes: int):
        self.upload_dir = upload_dir
        self.max_bytes = max_bytes
        os.makedirs(self.upload_dir, exist_ok=True)

    @staticmethod
    def generate_filename(kind: str, original_filename: str) -> str:
        """Generate unique filename for an uploaded asset"""
        file_ext = os.path.splitext(original_filename)[1].lower()
        unique_id = uuid.uuid4().hex[:12]
        return f"{kind}_{unique_id}{file_ext}"

    def get_file_path(self, filename: str) -> str:
        return os.path.join(self.upload_dir, filename)

    @staticmethod
    def get_public_url(filename: str) -> str:
        return f"{PUBLIC_PREFIX}/{filename}"

    async def _read_checked(self, file: UploadFile, allowed: set, field: str) -> bytes:
        file_ext = os.path.splitext(file.filename or '')[1].lower()
        if file_ext not in allowed:
            raise ValidationError.field(field, f"Invalid file type. Allowed: {', '.join(sorted(allowed))}")
        if file.size and file.size > self.max_bytes:
            raise ValidationError.field(field, "File too large")
        content = await file.read()
        if len(content) > self.max_bytes:
            raise ValidationError.field(field, "File too large")
        if not content:
            raise ValidationError.field(field, "File is empty")
        return content

    @staticmethod
    def resize_image(file_content: bytes) -> bytes:
        """Validate the image and shrink it to max dimensions, keeping aspect ratio"""
        try:
            with Image.open(io.BytesIO(file_content)) as img:
                img.verify()
            with Image.open(io.BytesIO(file_content)) as img:
                if img.mode != 'RGB':
                    img = img.convert('RGB')
                img.thumbnail(MAX_IMAGE_SIZE, Image.Resampling.LANCZOS)
                output = io.BytesIO()
                img.save(output, format='JPEG', quality=85, optimize=True)
                return output.getvalue()
        except Exception:
            raise ValidationError.field('coverImage', "Invalid image file")

    async def _write(self, filename: str, content: bytes) -> str:
        file_path = self.get_file_path(filename)
        try:
            async with aiofiles.open(file_path, 'wb') as f:
                await f.write(content)
        except Exception:
            # Clean up file if it was created
            if os.path.exists(file_path):
                os.remove(file_path)
            raise
        return self.get_public_url(filename)

    async def save_cover_image(self, file: UploadFile) -> str:
        content = await self._read_checked(file, IMAGE_EXTENSIONS, 'coverImage')
        resized = self.resize_image(content)
        filename = os.path.splitext(self.generate_filename('cover', file.filename or 'cover.jpg'))[0] + '.jpg'
        return await self._write(filename, resized)

    async def save_audio(self, file: UploadFile) -> str:
        content = await self._read_checked(file, AUDIO_EXTENSIONS, 'audioFile')
        filename = self.generate_filename('audio', file.filename or 'narration.mp3')
        return await self._write(filename, content)

    def delete(self, public_url: Optional[str]) -> bool:
        """Delete a previously stored asset; foreign URLs are ignored"""
        if not public_url or not public_url.startswith(PUBLIC_PREFIX + '/'):
            return False
        file_path = self.get_file_path(os.path.basename(public_url))
        if os.path.exists(file_path):
            os.remove(file_path)
            return True
        return False
