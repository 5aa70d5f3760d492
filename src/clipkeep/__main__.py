from clipkeep.cli import app

app(prog_name="clipkeep")
