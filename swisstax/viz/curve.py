from decimal import Decimal
from typing import Dict, Iterable, Optional, Tuple
import matplotlib.pyplot as plt


def plot_curve(
    points: Iterable[Tuple[int, Dict[str, Decimal]]],
    out_path: str,
    title: Optional[str] = None,
):
    """
    points: iterable of (income:int, components) where components maps
      "canton", "city", "church" and "total" to tax amounts.
    Components are drawn as stacked areas, the total as a line on top.
    """
    points = list(points)
    xs = [x for x, _ in points]
    canton = [float(c["canton"]) for _, c in points]
    city = [float(c["city"]) for _, c in points]
    church = [float(c["church"]) for _, c in points]
    total = [float(c["total"]) for _, c in points]

    plt.figure()
    ax = plt.gca()
    ax.stackplot(xs, canton, city, church, labels=["Canton", "Municipality", "Church"], alpha=0.5)
    ax.plot(xs, total, color="black", lw=1.2, label="Total")
    ax.set_xlabel("Taxable income (CHF)")
    ax.set_ylabel("Tax (CHF)")
    ax.set_title(title or "Cantonal and municipal tax curve")
    ax.legend(loc="upper left")

    plt.tight_layout()
    plt.savefig(out_path, dpi=150)
    plt.close()
