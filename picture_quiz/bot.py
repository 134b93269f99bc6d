import discord
from discord import app_commands
from discord.ext import commands
import logging
import asyncio
import string
from typing import Optional, Sequence, Set
import os
from pathlib import Path

from .config_manager import ConfigManager
from .data_manager import DataManager
from .game_controller import GameController
from .game_session import SessionListener
from .question_bank import QuestionBank
from .models import (
    GameMode,
    Outcome,
    Question,
    ResultKind,
    ScoreSnapshot,
    SessionPhase,
    SessionState,
    Team,
    WinSummary,
)

logger = logging.getLogger(__name__)

OPTION_LETTERS = string.ascii_uppercase[:QuestionBank.MAX_OPTIONS]
TEAM_LABELS = {Team.RED: "🟥 Red", Team.BLUE: "🟦 Blue"}


def setup_logging(log_directory: str = "logs", level: int = logging.INFO):
    """Set up logging for debugging and monitoring."""
    logs_dir = Path(log_directory)
    logs_dir.mkdir(exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),  # Console output
            logging.FileHandler(logs_dir / "bot.log", encoding='utf-8'),  # File output
        ]
    )

    # Set up error-specific logging
    error_handler = logging.FileHandler(logs_dir / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    ))
    logging.getLogger().addHandler(error_handler)

    # Reduce discord.py noise
    logging.getLogger('discord').setLevel(logging.WARNING)
    logging.getLogger('discord.http').setLevel(logging.WARNING)

    return logging.getLogger(__name__)


def parse_option(answer: str, option_count: int) -> Optional[int]:
    """
    Turn "B", "b" or "2" into a 0-based option index.

    Returns:
        The index, or None if the text names no option of the question
    """
    text = answer.strip().upper()
    if len(text) == 1 and text in OPTION_LETTERS[:option_count]:
        return OPTION_LETTERS.index(text)
    if text.isdigit() and 1 <= int(text) <= option_count:
        return int(text) - 1
    return None


def option_choices(option_count: int) -> str:
    """Letters of the first option_count options, e.g. "A, B or C"."""
    letters = list(OPTION_LETTERS[:option_count])
    return f"{', '.join(letters[:-1])} or {letters[-1]}"


def render_board(snapshot: Sequence[bool], size: int, selected: Optional[int] = None) -> str:
    """Render the grid as a code block; revealed cells are blank."""
    rows = []
    for row in range(size):
        cells = []
        for col in range(size):
            index = row * size + col
            if snapshot[index]:
                cells.append("    ")
            elif index == selected:
                cells.append("[??]")
            else:
                cells.append(f"[{index + 1:02d}]")
        rows.append(" ".join(cells))
    return "```\n" + "\n".join(rows) + "\n```"


def render_scores(scores: ScoreSnapshot) -> str:
    if scores.mode is GameMode.TEAM:
        text = f"{TEAM_LABELS[Team.RED]}: **{scores.red}**  |  {TEAM_LABELS[Team.BLUE]}: **{scores.blue}**"
        if scores.active_team is not None:
            text += f"\nTurn: {TEAM_LABELS[scores.active_team]}"
        return text
    return f"Score: **{scores.score}**"


def render_result(summary: WinSummary) -> str:
    result = summary.result
    if result.kind is ResultKind.WINNER:
        return f"🏆 {TEAM_LABELS[result.winner]} team wins!"
    if result.kind is ResultKind.TIE:
        return "🤝 It's a tie!"
    return f"🎉 Victory! Final score: {result.final_score}"


def build_question_embed(question: Question, cell_number: int, remaining: int,
                         scores: Optional[ScoreSnapshot] = None) -> discord.Embed:
    """Question card; turns orange then red as time runs out."""
    if remaining > 5:
        color, timer_emoji = 0x00ff00, "⏱️"
    elif remaining > 2:
        color, timer_emoji = 0xff6600, "⚠️"
    else:
        color, timer_emoji = 0xff0000, "🚨"

    embed = discord.Embed(
        title=f"🎯 Cell {cell_number}",
        description=f"**{question.text}**",
        color=color
    )
    embed.add_field(
        name="Options",
        value="\n".join(f"**{OPTION_LETTERS[i]}**. {option}" for i, option in enumerate(question.options)),
        inline=False
    )
    embed.add_field(
        name=f"{timer_emoji} Time Remaining",
        value=f"{remaining} second{'s' if remaining != 1 else ''}",
        inline=True
    )
    if scores is not None and scores.active_team is not None:
        embed.add_field(name="Turn", value=TEAM_LABELS[scores.active_team], inline=True)
    embed.set_footer(text=f"Answer with /answer {option_choices(len(question.options))}")
    return embed


class ChannelPresenter(SessionListener):
    """Posts a channel's game events to Discord."""

    def __init__(self, channel: discord.abc.Messageable, controller: GameController, channel_id: int):
        self.channel = channel
        self.controller = controller
        self.channel_id = channel_id
        self.question_message: Optional[discord.Message] = None
        self._last_phase = SessionPhase.SETUP
        # Running sends; the loop only holds weak references to tasks
        self._pending: Set[asyncio.Task] = set()

    def _post(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(self._send_safely(coro))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send_safely(self, coro) -> None:
        try:
            await coro
        except discord.HTTPException as e:
            # Log error but don't raise to avoid breaking the game
            logger.error(f"Failed to update channel {self.channel_id}: {e}")

    def on_state_changed(self, state: SessionState) -> None:
        previous, self._last_phase = self._last_phase, state.phase
        if state.phase is not SessionPhase.IDLE or previous is SessionPhase.SETUP:
            return

        self.question_message = None
        session = self.controller.get_session(self.channel_id)
        embed = discord.Embed(
            title="🧩 Pick a cell",
            description=render_board(session.grid_snapshot(), session.grid_size),
            color=0x0ea5e9
        )
        embed.add_field(name="📊 Score", value=render_scores(session.score_snapshot()), inline=False)
        embed.set_footer(text="Use /pick <number> to open a cell, or /guess if you know the picture")
        self._post(self.channel.send(embed=embed))

    def on_tick(self, remaining: int) -> None:
        # Throttled to stay inside Discord's edit rate limits
        if self.question_message is None or not (remaining % 5 == 0 or remaining <= 3):
            return
        session = self.controller.get_session(self.channel_id)
        question = session.current_question()
        if question is None:
            return
        embed = build_question_embed(question, session.selected_cell + 1, remaining, session.score_snapshot())
        self._post(self.question_message.edit(embed=embed))

    def on_answer_judged(self, outcome: Outcome) -> None:
        session = self.controller.get_session(self.channel_id)
        question = session.current_question()
        correct_text = f"**{OPTION_LETTERS[question.correct_index]}**. {question.options[question.correct_index]}"
        if outcome is Outcome.CORRECT:
            embed = discord.Embed(title="✅ Correct!", description=f"Cell {session.selected_cell + 1} is revealed.",
                                  color=0x10b981)
        else:
            embed = discord.Embed(title="❌ Not this time", description=f"The answer was {correct_text}",
                                  color=0xef4444)
        self._post(self.channel.send(embed=embed))

    def on_won(self, summary: WinSummary) -> None:
        game = self.controller.get_game(self.channel_id)
        embed = discord.Embed(
            title=render_result(summary),
            description="The picture was guessed!" if summary.forced else "Every cell is open!",
            color=0xfbbf24
        )
        embed.add_field(name="📊 Final Score", value=render_scores(summary.scores), inline=False)
        embed.add_field(name="🧩 Revealed", value=f"{summary.revealed_count}/{summary.total_cells}", inline=True)
        if game is not None:
            embed.set_image(url=game.picture_url)
        embed.set_footer(text="Use /start to play again")
        self._post(self.channel.send(embed=embed))


class PictureQuizBot(commands.Bot):
    """Discord bot hosting picture-reveal quiz games."""

    def __init__(self, config=None):
        intents = discord.Intents.none()
        intents.guilds = True  # Required for slash commands

        command_prefix = '!'
        if config and 'bot' in config:
            command_prefix = config['bot'].get('command_prefix', '!')

        super().__init__(
            command_prefix=command_prefix,  # Fallback prefix, mainly using slash commands
            intents=intents,
            help_command=None
        )

        self.app_config = config or {}

        self.data_manager: Optional[DataManager] = None
        self.config_manager: Optional[ConfigManager] = None
        self.game_controller: Optional[GameController] = None

    async def setup_hook(self):
        """Called when the bot is starting up"""
        logger.info("Setting up bot components...")

        self.config_manager = ConfigManager()
        if self.app_config:
            self.apply_configuration()

        self.data_manager = DataManager(self.config_manager.get_question_directory())
        self.game_controller = GameController(self.data_manager, self.config_manager)

        self.load_question_data()
        self.setup_commands()

        logger.info("Bot setup completed successfully")

    def apply_configuration(self):
        """Apply settings from configuration file to the config manager."""
        rejected = self.config_manager.apply_config(self.app_config.get('game', {}))
        for message in rejected:
            logger.warning(f"Ignoring config value {message}")
        validation = self.config_manager.validate_settings()
        for issue in validation["issues"]:
            logger.warning(f"Configuration issue: {issue}")
        logger.info("Configuration applied")

    def load_question_data(self):
        """Load question banks from the question directory"""
        self.data_manager.load_bank_files()
        summary = self.data_manager.get_loading_summary()
        logger.info(
            f"Loaded {summary['total_banks']} question banks from {summary['question_directory']}: "
            f"{', '.join(summary['available_banks'])}"
        )
        for error in summary['errors']:
            logger.warning(f"Question loading: {error}")
        if summary['fallback_active']:
            logger.warning("Using the built-in fallback questions")

    def setup_commands(self):
        """Register all slash commands"""

        @self.tree.command(name="help", description="Display available commands and how to play")
        async def help_command(interaction: discord.Interaction):
            await self.handle_help(interaction)

        # Game commands
        @self.tree.command(name="start", description="Start a picture-reveal game with current settings")
        async def start_command(interaction: discord.Interaction):
            await self.handle_start(interaction)

        @self.tree.command(name="pick", description="Open a cell by its number")
        @app_commands.describe(cell="Cell number shown on the board")
        async def pick_command(interaction: discord.Interaction, cell: int):
            await self.handle_pick(interaction, cell)

        @self.tree.command(name="answer", description="Answer the current question (A, B, C, D)")
        @app_commands.describe(option="Option letter or number")
        async def answer_command(interaction: discord.Interaction, option: str):
            await self.handle_answer(interaction, option)

        @self.tree.command(name="guess", description="Guess the hidden picture and win immediately")
        async def guess_command(interaction: discord.Interaction, guess: str):
            await self.handle_guess(interaction, guess)

        @self.tree.command(name="exit", description="End the current game and return to setup")
        async def exit_command(interaction: discord.Interaction):
            await self.handle_exit(interaction)

        @self.tree.command(name="status", description="Show the board and scores")
        async def status_command(interaction: discord.Interaction):
            await self.handle_status(interaction)

        # Settings commands
        @self.tree.command(name="set_mode", description="Set the game mode: solo, team or speed")
        async def set_mode_command(interaction: discord.Interaction, mode: str):
            await self.send_result(interaction, self.config_manager.set_mode(mode))

        @self.tree.command(name="set_grid", description="Set the grid size (2-5)")
        async def set_grid_command(interaction: discord.Interaction, size: int):
            await self.send_result(interaction, self.config_manager.set_grid_size(size))

        @self.tree.command(name="set_timer", description="Set seconds per question (5-30)")
        async def set_timer_command(interaction: discord.Interaction, seconds: int):
            await self.send_result(interaction, self.config_manager.set_time_limit(seconds))

        @self.tree.command(name="reset_settings", description="Restore the default game settings")
        async def reset_settings_command(interaction: discord.Interaction):
            await self.handle_reset_settings(interaction)

        @self.tree.command(name="set_picture", description="Set the hidden picture (image URL)")
        async def set_picture_command(interaction: discord.Interaction, url: str):
            await self.send_result(interaction, self.config_manager.set_picture_url(url))

        # Question bank commands
        @self.tree.command(name="bank", description="List question banks, or switch to one by name")
        @app_commands.describe(name="Bank to use for new games")
        async def bank_command(interaction: discord.Interaction, name: Optional[str] = None):
            await self.handle_bank(interaction, name)

        @self.tree.command(name="questions", description="List the questions in the bank")
        async def questions_command(interaction: discord.Interaction):
            await self.handle_questions(interaction)

        @self.tree.command(name="add_question", description="Add a multiple-choice question")
        @app_commands.describe(correct="Letter of the correct option")
        async def add_question_command(interaction: discord.Interaction, text: str, option_a: str, option_b: str,
                                       correct: str, option_c: Optional[str] = None,
                                       option_d: Optional[str] = None):
            options = [o for o in (option_a, option_b, option_c, option_d) if o is not None]
            await self.handle_add_question(interaction, text, options, correct)

        @self.tree.command(name="remove_question", description="Remove a question by id")
        async def remove_question_command(interaction: discord.Interaction, question_id: str):
            await self.send_result(interaction, self.game_controller.remove_question(question_id))

        @self.tree.command(name="clear_questions", description="Remove every question from the bank")
        async def clear_questions_command(interaction: discord.Interaction):
            await self.send_result(interaction, self.game_controller.clear_questions())

        logger.info("Slash commands registered successfully")

    async def on_ready(self):
        """Called when the bot has successfully connected to Discord"""
        logger.info(f"Bot is ready! Logged in as {self.user}")
        logger.info(f"Bot is in {len(self.guilds)} guilds")
        try:
            synced = await self.tree.sync()
            logger.info(f"Synced {len(synced)} slash commands")
        except discord.HTTPException as e:
            logger.error(f"Failed to sync slash commands: {e}")

    async def on_error(self, event, *args, **kwargs):
        """Handle general bot errors"""
        logger.error(f"An error occurred in event {event}", exc_info=True)

    async def close(self):
        if self.game_controller is not None:
            self.game_controller.shutdown()
        await super().close()

    # --- Handlers ---

    async def handle_help(self, interaction: discord.Interaction):
        """Handle /help command"""
        embed = discord.Embed(
            title="🖼️ Picture Reveal Quiz",
            description="A picture is hidden behind a grid. Pick a cell, answer its question "
                        "before time runs out, and the cell opens. Open every cell, or guess the "
                        "picture, to win!",
            color=0x0099ff
        )
        embed.add_field(
            name="🎮 Playing",
            value="`/start` - Start a game\n"
                  "`/pick <n>` - Open cell n\n"
                  "`/answer <A-D>` - Answer the question\n"
                  "`/guess <text>` - Guess the picture and win\n"
                  "`/status` - Show board and scores\n"
                  "`/exit` - End the game",
            inline=False
        )
        embed.add_field(
            name="⚙️ Settings",
            value="`/set_mode <solo|team|speed>`\n"
                  "`/set_grid <2-5>`\n"
                  "`/set_timer <5-30>`\n"
                  "`/set_picture <url>`\n"
                  "`/reset_settings`",
            inline=False
        )
        embed.add_field(
            name="📝 Questions",
            value="`/bank [name]`, `/questions`, `/add_question`, `/remove_question`, `/clear_questions`",
            inline=False
        )
        embed.add_field(name="Current Settings", value=self.config_manager.get_settings_summary(), inline=False)
        await interaction.response.send_message(embed=embed)

    async def handle_start(self, interaction: discord.Interaction):
        """Handle /start command"""
        channel_id = interaction.channel_id
        presenter = ChannelPresenter(interaction.channel, self.game_controller, channel_id)
        result = self.game_controller.start_game(channel_id, listener=presenter)

        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Game Start Failed")
            return

        info = result['game_info']
        session = self.game_controller.get_session(channel_id)
        embed = discord.Embed(
            title="🖼️ Game Started!",
            description=render_board(session.grid_snapshot(), session.grid_size),
            color=0x00ff00
        )
        embed.add_field(
            name="📊 Game Details",
            value=(
                f"Mode: {info['mode'].value}\n"
                f"Grid: {info['grid_size']}x{info['grid_size']}\n"
                f"Timer: {info['time_limit']} seconds per question\n"
                f"Questions: {info['question_count']} ({info['bank_name']})"
            ),
            inline=False
        )
        if info['scores'].active_team is not None:
            embed.add_field(name="First Turn", value=TEAM_LABELS[info['scores'].active_team], inline=False)
        if self.data_manager.is_fallback_bank_active():
            embed.add_field(
                name="⚠️ Using Fallback Questions",
                value="Question files could not be loaded; the built-in set is in use.",
                inline=False
            )
        embed.set_footer(text="Use /pick <number> to open a cell")
        await interaction.response.send_message(embed=embed)

    async def handle_pick(self, interaction: discord.Interaction, cell: int):
        """Handle /pick command"""
        channel_id = interaction.channel_id
        result = self.game_controller.select_cell(channel_id, cell)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Can't Open Cell")
            return

        session = self.game_controller.get_session(channel_id)
        embed = build_question_embed(result['question'], cell, session.remaining_time(), session.score_snapshot())
        await interaction.response.send_message(embed=embed)

        game = self.game_controller.get_game(channel_id)
        if isinstance(game.listener, ChannelPresenter):
            game.listener.question_message = await interaction.original_response()

    async def handle_answer(self, interaction: discord.Interaction, option: str):
        """Handle /answer command"""
        channel_id = interaction.channel_id
        session = self.game_controller.get_session(channel_id)
        question = session.current_question() if session else None
        option_count = len(question.options) if question else len(OPTION_LETTERS)

        option_index = parse_option(option, option_count)
        if option_index is None:
            await self.send_error_response(
                interaction, f"❌ '{option}' is not an option. Use a letter A-{OPTION_LETTERS[option_count - 1]}",
                "❌ Invalid Answer"
            )
            return

        result = self.game_controller.submit_answer(channel_id, option_index)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Answer Not Accepted")
            return

        await interaction.response.send_message(
            f"📝 {interaction.user.mention} answered **{OPTION_LETTERS[option_index]}**"
        )

    async def handle_guess(self, interaction: discord.Interaction, guess: str):
        """Handle /guess command"""
        result = self.game_controller.guess_picture(interaction.channel_id, guess)
        if not result['success']:
            await self.send_error_response(interaction, result['user_message'], "❌ Guess Not Accepted")
            return
        await interaction.response.send_message(
            f"🔮 {interaction.user.mention} guessed: **{result['guess']}**"
        )

    async def handle_exit(self, interaction: discord.Interaction):
        """Handle /exit command"""
        await self.send_result(interaction, self.game_controller.return_to_setup(interaction.channel_id))

    async def handle_status(self, interaction: discord.Interaction):
        """Handle /status command"""
        channel_id = interaction.channel_id
        session = self.game_controller.get_session(channel_id)
        if session is None or session.phase is SessionPhase.SETUP:
            await self.send_info_response(interaction, self.game_controller.get_status_summary(channel_id),
                                          "📊 Game Status")
            return

        embed = discord.Embed(
            title="📊 Game Status",
            description=render_board(session.grid_snapshot(), session.grid_size, session.selected_cell),
            color=0x0099ff
        )
        embed.add_field(name="Status", value=self.game_controller.get_status_summary(channel_id), inline=False)
        embed.add_field(name="Score", value=render_scores(session.score_snapshot()), inline=False)
        if session.phase is SessionPhase.QUESTION_PENDING:
            embed.add_field(name="⏱️ Time Remaining", value=f"{session.remaining_time()} seconds", inline=True)
        await interaction.response.send_message(embed=embed)

    async def handle_reset_settings(self, interaction: discord.Interaction):
        """Handle /reset_settings command"""
        self.config_manager.reset_to_defaults()
        await self.send_info_response(interaction, self.config_manager.get_settings_summary(), "✅ Settings Reset")

    async def handle_bank(self, interaction: discord.Interaction, name: Optional[str] = None):
        """Handle /bank command"""
        if name:
            await self.send_result(interaction, self.game_controller.select_bank(name.strip()))
            return

        current = self.game_controller.get_current_bank()
        lines = []
        for bank_name in self.data_manager.get_available_banks():
            marker = "▶️" if bank_name == self.game_controller.bank_name else "▫️"
            lines.append(f"{marker} **{bank_name}** ({self.data_manager.get_question_count(bank_name)} questions)")

        embed = discord.Embed(
            title="📚 Question Banks",
            description="\n".join(lines),
            color=0x0099ff
        )
        embed.set_footer(text=f"In use: {self.game_controller.bank_name} ({len(current)} questions). "
                              f"Switch with /bank <name>")
        await interaction.response.send_message(embed=embed)

    async def handle_questions(self, interaction: discord.Interaction):
        """Handle /questions command"""
        questions = self.game_controller.list_questions()
        if not questions:
            await self.send_info_response(interaction, "The question bank is empty. Add one with `/add_question`.",
                                          "📝 Questions")
            return

        lines = []
        for question in questions[:20]:
            answer = OPTION_LETTERS[question.correct_index]
            lines.append(f"`{question.id}` {question.text} (**{answer}**)")
        if len(questions) > 20:
            lines.append(f"... and {len(questions) - 20} more")

        embed = discord.Embed(
            title=f"📝 Questions ({len(questions)})",
            description="\n".join(lines),
            color=0x0099ff
        )
        await interaction.response.send_message(embed=embed, ephemeral=True)

    async def handle_add_question(self, interaction: discord.Interaction, text: str, options: list, correct: str):
        """Handle /add_question command"""
        correct_index = parse_option(correct, len(options))
        if correct_index is None:
            await self.send_error_response(
                interaction, f"❌ The correct option must be one of A-{OPTION_LETTERS[len(options) - 1]}",
                "❌ Invalid Question"
            )
            return
        await self.send_result(interaction, self.game_controller.add_question(text, options, correct_index))

    # --- Responses ---

    async def send_result(self, interaction: discord.Interaction, result: dict):
        """Reply with a controller or config result dictionary."""
        if result['success']:
            await self.send_info_response(interaction, result.get('user_message', result.get('message', 'Done')),
                                          "✅ Done")
        else:
            await self.send_error_response(interaction, result.get('user_message', result.get('error', 'Failed')))

    async def send_error_response(self, interaction: discord.Interaction, message: str, title: str = "❌ Error"):
        """Send a standardized error response"""
        embed = discord.Embed(title=title, description=message, color=0xff0000)
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=embed, ephemeral=True)
        except discord.HTTPException as e:
            logger.error(f"Failed to send error response: {e}")

    async def send_info_response(self, interaction: discord.Interaction, message: str,
                                 title: str = "ℹ️ Information"):
        """Send a standardized information response"""
        embed = discord.Embed(title=title, description=message, color=0x0099ff)
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=embed)
            else:
                await interaction.response.send_message(embed=embed)
        except discord.HTTPException as e:
            logger.error(f"Failed to send info response: {e}")


async def run_bot(token=None, config=None):
    """Run the bot with proper error handling"""
    if not token:
        token = os.getenv('DISCORD_BOT_TOKEN')

    if not token:
        logger.error("No Discord bot token provided")
        return

    bot = PictureQuizBot(config)

    try:
        logger.info("Starting Picture Reveal Quiz bot...")
        await bot.start(token)
    except discord.LoginFailure:
        logger.error("Invalid bot token provided")
    except discord.HTTPException as e:
        logger.error(f"HTTP error occurred: {e}")
    finally:
        if not bot.is_closed():
            await bot.close()
