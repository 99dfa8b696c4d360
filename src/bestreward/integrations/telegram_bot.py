import asyncio
from decimal import Decimal, InvalidOperation

from loguru import logger
from telegram import Update
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from bestreward.api.deps import get_service
from bestreward.config import settings
from bestreward.domain.errors import RewardEngineError
from bestreward.log import setup_logging
from bestreward.schemas.responses import ChannelQueryResult, SchemeCalculation

MAX_OPTIONS = 5


def _format_query(results: list[ChannelQueryResult]) -> str:
    lines: list[str] = []
    for result in results:
        if result.channel_id is None:
            lines.append(f"No channel matches '{result.keyword}'.")
            continue

        lines.append(f"[{result.channel_name}]")
        for option in result.excluded:
            lines.append(f"  excluded: {option.excluded_by}")
        for option in result.included[:MAX_OPTIONS]:
            line = f"  {option.total_percentage}% {option.label}"
            if option.requires_switch:
                line += " (switch required)"
            if option.activity_end:
                line += f" until {option.activity_end.isoformat()}"
            lines.append(line)
        if not result.included:
            lines.append("  no applicable rewards")
    return "\n".join(lines)


def _format_calculation(payload: SchemeCalculation) -> str:
    parts = " + ".join(str(line.calculated_reward) for line in payload.breakdown)
    lines = [f"Reward: {payload.total_reward} ({parts})"]
    for item in payload.quota_projection:
        if item.quota_limit is None:
            continue
        lines.append(f"  {item.percentage}%: remaining {item.remaining_before} -> {item.remaining_after}")
    return "\n".join(lines)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.message.reply_text(
        "Send a merchant name, e.g. '全聯', to see the best card.\n"
        "/calc <amount> <scheme_id> [payment_method_id] previews a transaction."
    )


async def handle_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    text = (update.message.text or "").strip()
    try:
        results = await asyncio.to_thread(get_service().query_by_channels, [text])
        await update.message.reply_text(_format_query(results))
    except RewardEngineError as exc:
        logger.warning("Query {!r} failed: {}", text, exc)
        await update.message.reply_text(f"Query failed: {exc}")


async def calc(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    args = context.args or []
    if len(args) < 2:
        await update.message.reply_text("Usage: /calc <amount> <scheme_id> [payment_method_id]")
        return

    try:
        amount = Decimal(args[0])
    except InvalidOperation:
        await update.message.reply_text(f"Not an amount: {args[0]}")
        return

    payment_method_id = args[2] if len(args) > 2 else None
    try:
        result = await asyncio.to_thread(get_service().calculate_with_scheme, amount, args[1], payment_method_id)
        await update.message.reply_text(_format_calculation(result))
    except RewardEngineError as exc:
        logger.warning("Calc {} failed: {}", args, exc)
        await update.message.reply_text(f"Calculation failed: {exc}")


def main() -> None:
    if not settings.telegram_bot_token:
        raise ValueError("TELEGRAM_BOT_TOKEN is required.")

    setup_logging()
    app = Application.builder().token(settings.telegram_bot_token).build()
    app.add_handler(CommandHandler("start", start))
    app.add_handler(CommandHandler("calc", calc))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, handle_message))

    app.run_polling()


if __name__ == "__main__":
    main()
