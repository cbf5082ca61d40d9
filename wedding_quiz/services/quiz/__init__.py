"""Quiz domain services: game control, scoring, presence and standings.

Routes and socket handlers import from here so that transport concerns stay
out of the game mechanics.
"""
