"""The collection component: classifier, resolver, detector and fallback per request."""
