"""
Arena - chess tournament service

Responsibilities:
- Tournament registry (CRUD, activation, schedule regeneration)
- Player registration
- Match result submission
- Leaderboard and schedule views
- Row-level change notification for live clients
"""
