"""
gcontacts_backup.api - Google People API client
"""

from gcontacts_backup.api.people_api import PeopleAPI, PeopleAPIError, RateLimitError

__all__ = ["PeopleAPI", "PeopleAPIError", "RateLimitError"]
