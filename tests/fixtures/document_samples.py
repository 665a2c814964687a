"""Sample documents for testing.

Rendered HTML in the shape the source service returns it, plus image URLs
from each of its media hosts.
"""

ORIGINAL_IMAGE_URL = (
    "https://images.airstory.co/v1/prod/iXXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX/image.jpg"
)

SECOND_IMAGE_URL = (
    "https://images.airstory.co/v1/prod/iXXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX/image2.jpg"
)

TRANSFORMED_IMAGE_URL = (
    "https://images.airstory.co/c_scale,w_0.1/v1/prod/"
    "iXXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX/image.jpg"
)

CLOUDINARY_IMAGE_URL = (
    "https://res.cloudinary.com/airstory/image/upload/c_scale,w_0.1/v1/prod/"
    "iXXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX/image.jpg"
)

CLOUDINARY_ORIGINAL_URL = (
    "https://res.cloudinary.com/airstory/image/upload/v1/prod/"
    "iXXXXXXXX-XXXX-XXXX-XXXX-XXXXXXXXXXXX/image.jpg"
)

EXTERNAL_IMAGE_URL = "https://example.com/image.jpg"

RENDERED_DOCUMENT = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>My document</title>
</head>
<body>
<div>
<h1>My document</h1>
<p>First paragraph.</p>
</div>
</body>
</html>"""

RENDERED_DOCUMENT_BODY = "<h1>My document</h1>\n<p>First paragraph.</p>"

DOCUMENT_WITH_IMAGES = f"""<!DOCTYPE html>
<html>
<head><title>Images</title></head>
<body>
<p><img src="{ORIGINAL_IMAGE_URL}" alt="alt text"/></p>
<p><img src="{ORIGINAL_IMAGE_URL}" alt="alt text"/></p>
<p><img src="{EXTERNAL_IMAGE_URL}" alt="external"/></p>
</body>
</html>"""

DOCUMENT_METADATA = {
    "id": "doc-456",
    "title": "My <em>document</em>",
    "project_id": "proj-123",
}

# Smallest valid GIF
PIXEL_GIF = (
    b"GIF89a\x01\x00\x01\x00\x80\x00\x00\x00\x00\x00\xff\xff\xff!\xf9\x04"
    b"\x01\x00\x00\x00\x00,\x00\x00\x00\x00\x01\x00\x01\x00\x00\x02\x02D\x01\x00;"
)
