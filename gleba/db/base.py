"""
Declarative Base for Reference Data Models

Municipality boundaries and hydrography are the only persisted tables; layer
state lives in memory inside each LayerRegistry.

Author: Gleba Project
License: AGPL-3.0
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
