from runscripts.apps.cli.app import app

app(prog_name="runscripts")
