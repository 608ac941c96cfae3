"""Receipt Understanding Pipeline.

Turns receipt photos into editable transaction suggestions: OpenCV
preprocessing for legibility, Tesseract text recognition, and
confidence-scored extraction of amount, date/time, and merchant name.
"""
