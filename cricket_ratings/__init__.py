"""
Cricket Player Ratings

Bradley-Terry ability estimation from ball-by-ball data: every delivery is a
contest between a batter and a bowler, fitted as a wicket model
(binomial-logit) and a runs model (multinomial log-linear).
"""

__version__ = "0.1.0"
