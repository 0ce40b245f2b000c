"""Email templates — fare alert subject, HTML and plain-text bodies."""

from dataclasses import dataclass
from datetime import date, datetime
from html import escape

from farewatch.domain import utcnow


@dataclass
class FareEmail:
    subject: str
    html: str
    text: str


def stops_text(stops: int | None) -> str:
    if stops is None:
        return ""
    if stops == 0:
        return "Non-stop"
    return f"{stops} stop{'s' if stops > 1 else ''}"


def _fmt_date(d: date) -> str:
    return f"{d.strftime('%a, %b')} {d.day}"


def render_fare_email(
    origin: str,
    destination: str,
    depart: date,
    return_date: date | None,
    total: float,
    currency: str,
    carrier: str,
    stops_out: int,
    stops_back: int | None,
    link: str,
    target_price: float | None = None,
    found_at: datetime | None = None,
) -> FareEmail:
    """Render the alert sent when a watch fires."""
    found_at = found_at or utcnow()
    trip_type = "Round-trip" if return_date else "One-way"
    out_text = stops_text(stops_out)
    back_text = stops_text(stops_back) if return_date else ""
    price = f"{currency} {total:.2f}"

    subject = f"Fare alert: {origin} → {destination} now {price}"

    savings = None
    if target_price and total < target_price:
        savings = f"{currency} {target_price - total:.2f} below your target!"

    dates_line = _fmt_date(depart)
    if return_date:
        dates_line += f" - {_fmt_date(return_date)}"

    # Plain text
    lines = [
        "Flight Price Alert",
        "",
        f"{origin} → {destination} ({trip_type})",
        f"Price: {price}",
    ]
    if savings:
        lines.append(savings)
    lines += [
        f"Dates: {dates_line}",
        f"Airline: {carrier}",
        f"Outbound: {out_text}",
    ]
    if back_text:
        lines.append(f"Return: {back_text}")
    lines += [
        "",
        f"View flight details: {link}",
        "",
        f"Prices change frequently. This price was found at "
        f"{found_at.strftime('%Y-%m-%d %H:%M UTC')} and may no longer be available.",
    ]
    text = "\n".join(lines)

    # HTML
    e = escape
    savings_html = (
        f'<p style="color: #28a745; font-weight: bold; margin: 10px 0;">{e(savings)}</p>'
        if savings else ""
    )
    return_html = (
        f'<td style="padding: 10px; text-align: center;">Return<br><strong>{e(back_text)}</strong></td>'
        if back_text else ""
    )
    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Flight Price Alert</title></head>
<body style="font-family: -apple-system, 'Segoe UI', Roboto, sans-serif; color: #333; background: #f5f5f5; padding: 20px;">
  <div style="max-width: 600px; margin: 0 auto; background: white; border-radius: 8px;">
    <div style="background: #667eea; color: white; padding: 20px; text-align: center;">
      <h1 style="margin: 0; font-size: 24px;">Flight Price Alert</h1>
      <p style="margin: 5px 0 0 0;">We found a deal for you</p>
    </div>
    <div style="padding: 30px;">
      <div style="background: #f8f9fa; border-left: 4px solid #28a745; padding: 20px;">
        <h2 style="margin: 0 0 10px 0; color: #28a745; font-size: 32px;">{e(price)}</h2>
        <p style="margin: 0; color: #666;">{trip_type} flight</p>
        {savings_html}
      </div>
      <p style="font-size: 20px; font-weight: bold;">{e(origin)} → {e(destination)}</p>
      <p style="color: #666;">{e(dates_line)}</p>
      <table style="width: 100%; border-collapse: collapse;">
        <tr>
          <td style="padding: 10px; text-align: center;">Airline<br><strong>{e(carrier)}</strong></td>
          <td style="padding: 10px; text-align: center;">Outbound<br><strong>{e(out_text)}</strong></td>
          {return_html}
        </tr>
      </table>
      <div style="text-align: center; margin: 30px 0;">
        <a href="{e(link)}" style="background: #007bff; color: white; padding: 15px 30px; text-decoration: none; border-radius: 5px; font-weight: bold;">View Flight Details</a>
      </div>
      <p style="background: #fff3cd; padding: 15px; color: #856404; font-size: 14px;">
        <strong>Act fast!</strong> Flight prices change frequently.
        This price was found at {found_at.strftime('%Y-%m-%d %H:%M UTC')} and may no longer be available.
      </p>
    </div>
    <div style="background: #f8f9fa; padding: 20px; text-align: center; font-size: 12px; color: #666;">
      This alert was triggered by your price watch for {e(origin)} → {e(destination)}
    </div>
  </div>
</body>
</html>"""

    return FareEmail(subject=subject, html=html, text=text)
