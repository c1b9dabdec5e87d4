"""
Centralized site configuration.
Edit this file to update the page title and footer text displayed on all pages.
"""

SITE_CONFIG = {
    "title":       "Chest X-ray Analysis",
    "description": "Upload a chest X-ray and clinical information for automatic AI analysis.",
    # Logo shown above the form; leave empty to hide
    "logo_url": "",
    # Footer — displayed at the bottom of every page
    "footer_tagline": (
        "Results are produced by an automated model and are not a medical diagnosis. "
        "Always confirm findings with a qualified clinician."
    ),
    "footer_model_note": (
        "The analysis and heat-map services run on free hosting. "
        "The first request after a pause may take up to a minute."
    ),
}
