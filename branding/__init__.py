"""
Branding package for bulk logo application on product photos.

Modules:
- core: batch orchestration, progress and results
- render: watermark / corner mark geometry and JPEG compositing
- corners: AI corner selection with top-right fallback
- background: logo background removal with original-logo fallback
- vision: vision model adapter
- archive: zip output
- assets: product items and output naming
"""
