"""VideoTube API - video sharing and social backend."""
