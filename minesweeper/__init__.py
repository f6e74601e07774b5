"""Minesweeper with resumable and replayable games."""
