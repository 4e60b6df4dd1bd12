"""Services: compose repositories and pure analytics into API-ready views."""
