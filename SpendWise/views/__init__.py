from .api_v2 import api_v2

# All blueprints to be registered
views = [
    api_v2,    # JSON API consumed by the SpendWise frontend
]
