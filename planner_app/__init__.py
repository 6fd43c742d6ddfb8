"""Study Planner application package."""
