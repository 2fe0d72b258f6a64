# fastapi_querybuilder/params.py

from typing import Optional

from fastapi import Query


class QueryParams:
	"""
	OpenAPI documentation for the scalar directives.

	``filter[...]`` and ``fields[...]`` are bracketed keys that FastAPI can not
	declare, they are read from the raw query string by ``get_directives``.
	"""

	def __init__(
		self,
		sort: Optional[str] = Query(None, description="Comma separated sort keys, prefix with - for descending.", example="-created_at,title"),
		include: Optional[str] = Query(None, description="Comma separated relations to load.", example="author,comments"),
	):
		self.sort = sort
		self.include = include
