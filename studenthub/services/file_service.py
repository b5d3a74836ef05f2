"""Study-file validation, storage-path handling and text extraction."""

import html
import io
import re
import zipfile
from urllib.parse import unquote, urlparse

from docx import Document

IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'webp', 'gif', 'heic'}
OFFICE_EXTENSIONS = {'docx', 'pptx'}

_MIME_TYPES = {
    'pdf': 'application/pdf',
    'png': 'image/png',
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'webp': 'image/webp',
    'gif': 'image/gif',
    'heic': 'image/heic',
    'docx': 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
    'pptx': 'application/vnd.openxmlformats-officedocument.presentationml.presentation',
}

_SLIDE_NAME_RE = re.compile(r'^ppt/slides/slide(\d+)\.xml$')
_SLIDE_TEXT_RE = re.compile(r'<a:t>([^<]*)</a:t>')
_PERCENT_ESCAPE_RE = re.compile(r'%[0-9A-Fa-f]{2}')


def get_extension(filename):
    name = str(filename or '')
    if '.' not in name:
        return ''
    return name.rsplit('.', 1)[1].lower()


def get_mime_type(filename, default='application/octet-stream'):
    return _MIME_TYPES.get(get_extension(filename), default)


def bytes_have_pdf_signature(data):
    return bytes(data[:5]) == b'%PDF-'


def _zip_members(data):
    if bytes(data[:4]) != b'PK\x03\x04':
        return set()
    try:
        with zipfile.ZipFile(io.BytesIO(data), 'r') as archive:
            return set(archive.namelist())
    except zipfile.BadZipFile:
        return set()


def bytes_have_pptx_signature(data):
    members = _zip_members(data)
    return '[Content_Types].xml' in members and 'ppt/presentation.xml' in members


def bytes_have_docx_signature(data):
    members = _zip_members(data)
    return '[Content_Types].xml' in members and 'word/document.xml' in members


def bytes_look_like_image(data):
    header = bytes(data[:16])
    if header.startswith(b'\x89PNG\r\n\x1a\n'):
        return True
    if header.startswith(b'\xff\xd8\xff'):
        return True
    if header.startswith(b'GIF87a') or header.startswith(b'GIF89a'):
        return True
    if header.startswith(b'RIFF') and header[8:12] == b'WEBP':
        return True
    return header[4:8] == b'ftyp'


def extract_docx_text(data):
    document = Document(io.BytesIO(data))
    lines = [paragraph.text.strip() for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(' | '.join(cells))
    return '\n'.join(line for line in lines if line)


def extract_pptx_text(data):
    slides = []
    with zipfile.ZipFile(io.BytesIO(data), 'r') as archive:
        names = []
        for name in archive.namelist():
            match = _SLIDE_NAME_RE.match(name)
            if match:
                names.append((int(match.group(1)), name))
        for number, name in sorted(names):
            xml = archive.read(name).decode('utf-8', errors='ignore')
            runs = [html.unescape(text).strip() for text in _SLIDE_TEXT_RE.findall(xml)]
            runs = [text for text in runs if text]
            if runs:
                slides.append(f"Slide {number}:\n" + '\n'.join(runs))
    return '\n\n'.join(slides)


def extract_office_text(data, extension):
    """Return selectable text from a DOCX/PPTX file, or '' for anything else."""
    extension = str(extension or '').lower().lstrip('.')
    if extension == 'docx' and bytes_have_docx_signature(data):
        return extract_docx_text(data)
    if extension == 'pptx' and bytes_have_pptx_signature(data):
        return extract_pptx_text(data)
    return ''


def normalize_storage_path(path, bucket_prefix='exam-pdfs'):
    """Resolve a stored file reference to an object key inside the storage bucket.

    Accepts Firebase download URLs (``.../o/<encoded key>?alt=media``),
    ``gs://bucket/key`` URLs, keys with an accidental folder prefix and
    percent-encoded keys.
    """
    trimmed = str(path or '').strip()
    if not trimmed:
        return trimmed
    prefix = str(bucket_prefix or '').strip('/')

    if re.match(r'^https?://', trimmed, re.IGNORECASE):
        parsed = urlparse(trimmed)
        pathname = parsed.path or ''
        marker = '/o/'
        if marker in pathname:
            return normalize_storage_path(unquote(pathname.split(marker, 1)[1]), prefix)
        segments = [segment for segment in pathname.split('/') if segment]
        if prefix and prefix in segments:
            index = segments.index(prefix)
            if index + 1 < len(segments):
                return normalize_storage_path('/'.join(segments[index + 1:]), prefix)
        return normalize_storage_path('/'.join(segments), prefix) if segments else ''

    if trimmed.startswith('gs://'):
        without_scheme = trimmed[len('gs://'):]
        key = without_scheme.split('/', 1)[1] if '/' in without_scheme else ''
        return normalize_storage_path(key, prefix)

    if prefix and trimmed.startswith(f"{prefix}/"):
        return normalize_storage_path(trimmed[len(prefix) + 1:], prefix)

    if _PERCENT_ESCAPE_RE.search(trimmed):
        return unquote(trimmed)
    return trimmed


def storage_object_name(key, bucket_prefix='exam-pdfs'):
    prefix = str(bucket_prefix or '').strip('/')
    return f"{prefix}/{key}" if prefix else key


def download_storage_bytes(bucket, key, bucket_prefix='exam-pdfs'):
    return bucket.blob(storage_object_name(key, bucket_prefix)).download_as_bytes()
