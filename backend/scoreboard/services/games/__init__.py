"""Game record services.

Creating, editing and deleting games with their seats. Edits and deletes
feed back into every rating that contains the game.
"""
