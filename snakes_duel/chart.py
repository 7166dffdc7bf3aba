"""Render the standings table as a bar chart."""

from __future__ import annotations

import matplotlib
matplotlib.use("Agg")  # non-interactive backend

import matplotlib.pyplot as plt

from snakes_duel.history import Standing


def make_standings_chart(
    table: list[Standing],
    output_path: str = "standings.png",
    title: str = "Snakes & Ladders Standings",
) -> str:
    """Horizontal bars of Elo rating, labelled with each player's W-L-D record.

    Returns the path to the saved PNG.
    """
    rows = sorted(table, key=lambda s: s.rating, reverse=True)
    names = [s.name for s in rows]
    ratings = [s.rating for s in rows]

    fig, ax = plt.subplots(figsize=(10, max(3, len(rows) * 0.7)))
    bars = ax.barh(names, ratings, color="#3C9D5D", edgecolor="white")

    for bar, standing in zip(bars, rows):
        ax.text(
            bar.get_width() + 2, bar.get_y() + bar.get_height() / 2,
            f"{standing.rating:.0f}  ({standing.record})",
            va="center", fontsize=10,
        )

    ax.set_xlabel("Elo Rating")
    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.invert_yaxis()
    if ratings:
        ax.set_xlim(left=min(ratings) - 50, right=max(ratings) + 120)

    plt.tight_layout()
    fig.savefig(output_path, dpi=150)
    plt.close(fig)
    return output_path
