"""
Uniform-background cutout microservice package.

Exposes the pixel-level background removal stages, the bytes-in/RGBA-out
pipeline, and the FastAPI application serving it.
"""

__version__ = "0.1.0"
