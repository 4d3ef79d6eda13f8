"""
Jinja2 environment shared by the HTML views, the error pages and emails.
"""

from fastapi.templating import Jinja2Templates

from tourbook.core.config import get_settings

templates = Jinja2Templates(directory=str(get_settings().TEMPLATES_DIR))
