from ghadapter.core.app_factory import create_app

# Extensions register handlers on app.state.application, e.g.
#   app.state.application.on("issues.opened", handler)
app = create_app()
